"""
Pydantic models for AzureMachinePool and AzureMachine resources.
"""

from typing import Any

from pydantic import BaseModel, Field

from azure_admission.models.cluster import LabelledResource


class ManagedDisk(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    storage_account_type: str = Field("", alias="storageAccountType")


class OSDisk(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    os_type: str | None = Field(None, alias="osType")
    disk_size_gb: int | None = Field(None, alias="diskSizeGB")
    managed_disk: ManagedDisk = Field(default_factory=ManagedDisk, alias="managedDisk")


class AzureMachinePoolTemplate(BaseModel):
    """VM template shared by all instances of a node pool."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    vm_size: str = Field("", alias="vmSize")
    os_disk: OSDisk = Field(default_factory=OSDisk, alias="osDisk")
    data_disks: list[dict[str, Any]] = Field(default_factory=list, alias="dataDisks")
    accelerated_networking: bool | None = Field(None, alias="acceleratedNetworking")
    ssh_public_key: str = Field("", alias="sshPublicKey")

    @property
    def storage_account_type(self) -> str:
        return self.os_disk.managed_disk.storage_account_type


class AzureMachinePoolSpec(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    location: str = ""
    template: AzureMachinePoolTemplate = Field(
        default_factory=AzureMachinePoolTemplate
    )


class AzureMachinePool(LabelledResource):
    """Node pool VM scale set description."""

    spec: AzureMachinePoolSpec = Field(default_factory=AzureMachinePoolSpec)


class AzureMachineSpec(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    vm_size: str = Field("", alias="vmSize")
    failure_domain: str | None = Field(None, alias="failureDomain")


class AzureMachine(LabelledResource):
    """Single VM, used for control plane nodes."""

    spec: AzureMachineSpec = Field(default_factory=AzureMachineSpec)

    @property
    def failure_domain(self) -> str | None:
        # An empty failure domain is the same as none
        return self.spec.failure_domain or None
