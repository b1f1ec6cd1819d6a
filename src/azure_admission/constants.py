"""
Constants used throughout the admission controller.

This module defines all constant values used by the controller including:
- Labels and annotations read from admitted resources
- Custom resource coordinates for the object store
- VM capability names reported by the Azure SKU inventory
- Policy thresholds and defaults applied by the webhooks
"""

from azure_admission.settings import settings

# Label constants for resource identification
RELEASE_VERSION_LABEL = "release.giantswarm.io/version"
ORGANIZATION_LABEL = "giantswarm.io/organization"
CLUSTER_ID_LABEL = "giantswarm.io/cluster"
CAPI_CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
AZURE_OPERATOR_VERSION_LABEL = "azure-operator.giantswarm.io/version"
CLUSTER_OPERATOR_VERSION_LABEL = "cluster-operator.giantswarm.io/version"

# Annotation constants
IGNORE_RELEASE_ANNOTATION = "release.giantswarm.io/ignore"

# Release components whose versions are mirrored onto cluster labels
COMPONENT_VERSION_LABELS = {
    "azure-operator": AZURE_OPERATOR_VERSION_LABEL,
    "cluster-operator": CLUSTER_OPERATOR_VERSION_LABEL,
}

# Object store kinds: kind -> (group, version, plural, namespaced)
KIND_RELEASE = "Release"
KIND_CLUSTER = "Cluster"
RESOURCE_KINDS: dict[str, tuple[str, str, str, bool]] = {
    KIND_RELEASE: ("release.giantswarm.io", "v1alpha1", "releases", False),
    KIND_CLUSTER: ("cluster.x-k8s.io", "v1beta1", "clusters", True),
}

# Release CRs are always named with a leading "v"
RELEASE_NAME_PREFIX = "v"

# Cluster condition types that block a release change
CONDITION_CREATING = "Creating"
CONDITION_UPGRADING = "Upgrading"
CONDITION_TRUE = "True"

# Capability names reported by the Resource SKU API
CAPABILITY_SUPPORTED = "True"
CAPABILITY_ACCELERATED_NETWORKING = "AcceleratedNetworkingEnabled"
CAPABILITY_PREMIUM_IO = "PremiumIO"
CAPABILITY_MEMORY = "MemoryGB"
CAPABILITY_CPUS = "vCPUs"
SKU_RESOURCE_TYPE_VIRTUAL_MACHINES = "virtualMachines"

# Node pool sizing policy
MIN_NODE_MEMORY_GB = 16
MIN_NODE_CPUS = 4

# Storage account types accepted for node pool OS disks
STORAGE_ACCOUNT_STANDARD_LRS = "Standard_LRS"
STORAGE_ACCOUNT_PREMIUM_LRS = "Premium_LRS"
ALLOWED_STORAGE_ACCOUNT_TYPES = (
    STORAGE_ACCOUNT_STANDARD_LRS,
    STORAGE_ACCOUNT_PREMIUM_LRS,
)

# Control plane endpoint defaults
CONTROL_PLANE_ENDPOINT_PORT = 443

# Cluster network defaults
CLUSTER_API_SERVER_PORT = 443
DEFAULT_SERVICE_CIDR = "172.31.0.0/16"

# Node pools carry dedicated disks for the container runtime and kubelet
DESIRED_DATA_DISKS = (
    {"nameSuffix": "docker", "diskSizeGB": 100, "lun": 21},
    {"nameSuffix": "kubelet", "diskSizeGB": 100, "lun": 22},
)

# Organization label values must be valid DNS labels
DNS_LABEL_MAX_LENGTH = 63

# AzureCluster defaults
DEFAULT_AZURE_ENVIRONMENT = "AzurePublicCloud"
DEFAULT_VNET_CIDR = "10.0.0.0/8"
DEFAULT_CONTROL_PLANE_SUBNET_CIDR = "10.0.0.0/16"
DEFAULT_NODE_SUBNET_CIDR = "10.1.0.0/16"

# Subtrees populated asynchronously by the network controller; patches there
# are dropped before the mutation response is built
NETWORK_OWNED_PATCH_PATHS = (
    "/spec/networkSpec/vnet",
    "/spec/networkSpec/subnets",
)

# Webhook coordinates
CAPI_GROUP = "cluster.x-k8s.io"
CAPI_VERSION = "v1beta1"
CAPZ_GROUP = "infrastructure.cluster.x-k8s.io"
CAPZ_VERSION = "v1beta1"
CAPZ_EXP_VERSION = "v1beta1"

# Timeouts (sourced from settings)
ADMISSION_TIMEOUT = settings.admission_timeout_seconds
CATALOG_READ_TIMEOUT = settings.catalog_read_timeout_seconds
CAPABILITY_FETCH_TIMEOUT = settings.capability_fetch_timeout_seconds
RELEASE_COMPONENTS_CACHE_TTL = settings.release_components_cache_ttl_seconds
