"""
Admission webhooks for AzureCluster resources.

Validation enforces the installation's location and control plane endpoint
and guards release transitions. Mutation defaults the control plane endpoint
and normalizes the organization label on create and, on update, back-fills
component version labels and provider defaults. Network topology fields
are owned by another controller, so patches below them are dropped.
"""

import logging
from typing import Any

import kopf

from azure_admission.constants import (
    COMPONENT_VERSION_LABELS,
    CAPZ_GROUP,
    CAPZ_VERSION,
    DEFAULT_AZURE_ENVIRONMENT,
    DEFAULT_CONTROL_PLANE_SUBNET_CIDR,
    DEFAULT_NODE_SUBNET_CIDR,
    DEFAULT_VNET_CIDR,
    KIND_CLUSTER,
    NETWORK_OWNED_PATCH_PATHS,
)
from azure_admission.errors import InvalidOperationError, NotFoundError
from azure_admission.models.cluster import AzureCluster, Cluster
from azure_admission.webhooks.cluster import (
    default_control_plane_endpoint,
    validate_control_plane_endpoint,
    validate_organization_unchanged,
    validate_release_transition,
)
from azure_admission.webhooks.common import (
    AdmissionEngines,
    ResourcePolicy,
    normalize_organization_label,
    register_policy,
    run_mutation,
    run_validation,
)

logger = logging.getLogger(__name__)

KIND_AZURE_CLUSTER = "AzureCluster"


async def get_owner_cluster(
    engines: AdmissionEngines, azure_cluster: AzureCluster
) -> Cluster:
    """Read the Cluster that owns ``azure_cluster``."""
    cluster_name = azure_cluster.cluster_name
    if not cluster_name:
        for reference in azure_cluster.metadata.owner_references:
            if reference.kind == KIND_CLUSTER:
                cluster_name = reference.name
                break
    if not cluster_name:
        raise NotFoundError(
            f"AzureCluster {azure_cluster.name} has no owning Cluster"
        )

    raw = await engines.store.get(
        KIND_CLUSTER, cluster_name, azure_cluster.metadata.namespace
    )
    if raw is None:
        raise NotFoundError(
            f"Cluster {cluster_name} owning AzureCluster {azure_cluster.name} was not found"
        )
    return Cluster.model_validate(raw)


def apply_azure_cluster_defaults(document: dict[str, Any], name: str) -> None:
    """Fill in provider defaults that are missing from an AzureCluster."""
    spec = document.setdefault("spec", {})
    if not spec.get("resourceGroup"):
        spec["resourceGroup"] = name
    if not spec.get("azureEnvironment"):
        spec["azureEnvironment"] = DEFAULT_AZURE_ENVIRONMENT

    network_spec = spec.setdefault("networkSpec", {})
    vnet = network_spec.setdefault("vnet", {})
    if not vnet.get("name"):
        vnet["name"] = f"{name}-vnet"
    if not vnet.get("resourceGroup"):
        vnet["resourceGroup"] = spec["resourceGroup"]
    if not vnet.get("cidrBlocks"):
        vnet["cidrBlocks"] = [DEFAULT_VNET_CIDR]

    if not network_spec.get("subnets"):
        network_spec["subnets"] = [
            {
                "name": f"{name}-controlplane-subnet",
                "role": "control-plane",
                "cidrBlocks": [DEFAULT_CONTROL_PLANE_SUBNET_CIDR],
            },
            {
                "name": f"{name}-node-subnet",
                "role": "node",
                "cidrBlocks": [DEFAULT_NODE_SUBNET_CIDR],
            },
        ]


class AzureClusterPolicy(ResourcePolicy):
    kind = KIND_AZURE_CLUSTER
    model = AzureCluster
    excluded_patch_paths = NETWORK_OWNED_PATCH_PATHS

    async def validate_create(
        self, engines: AdmissionEngines, new: AzureCluster
    ) -> None:
        location = engines.installation_location
        if location and new.spec.location != location:
            raise InvalidOperationError(
                f"AzureCluster.Spec.Location must be {location!r}, got {new.spec.location!r}"
            )

        endpoint = new.spec.control_plane_endpoint
        if endpoint is None or endpoint.is_zero:
            return
        validate_control_plane_endpoint(endpoint, new.name, engines.base_domain)

    async def validate_update(
        self, engines: AdmissionEngines, old: AzureCluster, new: AzureCluster
    ) -> None:
        validate_organization_unchanged(old, new)

        old_endpoint = old.spec.control_plane_endpoint
        if (
            old_endpoint is not None
            and not old_endpoint.is_zero
            and old_endpoint != new.spec.control_plane_endpoint
        ):
            raise InvalidOperationError("ControlPlaneEndpoint can't be changed")

        if old.release_version != new.release_version:
            cluster = await get_owner_cluster(engines, new)
            if cluster.release_version != new.release_version:
                raise InvalidOperationError(
                    "AzureCluster release version must be set to the same release "
                    "version as the Cluster release version label"
                )

        await validate_release_transition(engines, old, new, "AzureCluster")

    async def mutate_create(
        self,
        engines: AdmissionEngines,
        new: AzureCluster,
        document: dict[str, Any],
        dryrun: bool,
    ) -> None:
        if dryrun:
            logger.debug("Dry run is not supported, skipping AzureCluster mutation")
            return

        normalize_organization_label(document)
        default_control_plane_endpoint(
            document.setdefault("spec", {}), new.name, engines.base_domain
        )

    async def mutate_update(
        self,
        engines: AdmissionEngines,
        old: AzureCluster,
        new: AzureCluster,
        document: dict[str, Any],
        dryrun: bool,
    ) -> None:
        if dryrun:
            logger.debug("Dry run is not supported, skipping AzureCluster mutation")
            return

        labels = document.setdefault("metadata", {}).setdefault("labels", {})
        missing = {
            component: label
            for component, label in COMPONENT_VERSION_LABELS.items()
            if not labels.get(label)
        }
        if missing:
            release_version = new.release_version
            if not release_version:
                release_version = (await get_owner_cluster(engines, new)).release_version
            if not release_version:
                raise InvalidOperationError(
                    f"AzureCluster {new.name} and its Cluster have no release version label"
                )
            components = await engines.catalog.component_versions(release_version)
            for component, label in missing.items():
                version = components.get(component)
                if not version:
                    raise InvalidOperationError(
                        f"Cannot find component {component!r} in release {release_version}"
                    )
                labels[label] = version

        apply_azure_cluster_defaults(document, new.name)


AZURE_CLUSTER_POLICY = register_policy(AzureClusterPolicy())


@kopf.on.validate(CAPZ_GROUP, CAPZ_VERSION, "azureclusters", id="validate-azurecluster")
async def validate_azurecluster(
    body: dict,
    name: str,
    namespace: str,
    operation: str,
    dryrun: bool,
    memo: kopf.Memo,
    old: dict | None = None,
    **kwargs,
) -> dict:
    """
    Validate AzureCluster resource before admission.

    Raises:
        kopf.AdmissionError: If validation fails
    """
    await run_validation(
        KIND_AZURE_CLUSTER,
        body=body,
        old=old,
        name=name,
        namespace=namespace,
        operation=operation,
        dryrun=dryrun,
        memo=memo,
    )
    return {}


@kopf.on.mutate(CAPZ_GROUP, CAPZ_VERSION, "azureclusters", id="mutate-azurecluster")
async def mutate_azurecluster(
    body: dict,
    name: str,
    namespace: str,
    operation: str,
    dryrun: bool,
    memo: kopf.Memo,
    patch: kopf.Patch,
    old: dict | None = None,
    **kwargs,
) -> dict:
    """
    Default AzureCluster fields before admission.

    Raises:
        kopf.AdmissionError: If the object cannot be mutated
    """
    await run_mutation(
        KIND_AZURE_CLUSTER,
        body=body,
        old=old,
        name=name,
        namespace=namespace,
        operation=operation,
        dryrun=dryrun,
        memo=memo,
        patch=patch,
    )
    return {}
