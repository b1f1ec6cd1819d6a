"""
Pydantic models for Cluster API Cluster and AzureCluster resources.

These models cover the fields read by the admission policies. Unknown fields
are ignored so that decoding never fails on newer API revisions; mutations
are always computed on the raw object, never on a re-serialised model.
"""

from typing import Any

from pydantic import BaseModel, Field

from azure_admission.constants import (
    CAPI_CLUSTER_NAME_LABEL,
    CONDITION_TRUE,
    ORGANIZATION_LABEL,
    RELEASE_VERSION_LABEL,
)
from azure_admission.models.release import ObjectMeta


class OwnerReference(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    api_version: str = Field("", alias="apiVersion")
    kind: str = ""
    name: str = ""


class ResourceMeta(ObjectMeta):
    """Object metadata including owner references."""

    owner_references: list[OwnerReference] = Field(
        default_factory=list, alias="ownerReferences"
    )


class Condition(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    type: str
    status: str = "Unknown"
    reason: str | None = None
    message: str | None = None


class APIEndpoint(BaseModel):
    """Control plane endpoint."""

    host: str = ""
    port: int = 0

    @property
    def is_zero(self) -> bool:
        return not self.host and not self.port


class LabelledResource(BaseModel):
    """Base for resources whose labels drive admission decisions."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    metadata: ResourceMeta = Field(default_factory=ResourceMeta)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels

    @property
    def release_version(self) -> str | None:
        return self.metadata.labels.get(RELEASE_VERSION_LABEL) or None

    @property
    def organization(self) -> str | None:
        return self.metadata.labels.get(ORGANIZATION_LABEL) or None

    @property
    def cluster_name(self) -> str | None:
        return self.metadata.labels.get(CAPI_CLUSTER_NAME_LABEL) or None


class ClusterSpec(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    cluster_network: dict[str, Any] | None = Field(None, alias="clusterNetwork")
    control_plane_endpoint: APIEndpoint | None = Field(
        None, alias="controlPlaneEndpoint"
    )


class ClusterStatus(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    conditions: list[Condition] = Field(default_factory=list)


class Cluster(LabelledResource):
    """Cluster API Cluster."""

    spec: ClusterSpec = Field(default_factory=ClusterSpec)
    status: ClusterStatus = Field(default_factory=ClusterStatus)

    def condition_is_true(self, condition_type: str) -> bool:
        return any(
            condition.type == condition_type and condition.status == CONDITION_TRUE
            for condition in self.status.conditions
        )


class AzureClusterSpec(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    location: str = ""
    resource_group: str | None = Field(None, alias="resourceGroup")
    azure_environment: str | None = Field(None, alias="azureEnvironment")
    control_plane_endpoint: APIEndpoint | None = Field(
        None, alias="controlPlaneEndpoint"
    )
    network_spec: dict[str, Any] | None = Field(None, alias="networkSpec")


class AzureCluster(LabelledResource):
    """Cluster API Provider Azure AzureCluster."""

    spec: AzureClusterSpec = Field(default_factory=AzureClusterSpec)
