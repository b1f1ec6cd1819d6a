"""
Admission webhooks for AzureMachinePool resources.

Node pools must run on VM sizes with enough CPU and memory, may only enable
features the VM size supports and cannot switch networking or storage
features once created. On create the mutating webhook fills in the location,
the runtime data disks and a storage account type the VM size supports.
"""

import copy
import logging
from typing import Any

import kopf

from azure_admission.constants import (
    ALLOWED_STORAGE_ACCOUNT_TYPES,
    CAPABILITY_ACCELERATED_NETWORKING,
    CAPABILITY_PREMIUM_IO,
    CAPZ_EXP_VERSION,
    CAPZ_GROUP,
    DESIRED_DATA_DISKS,
    MIN_NODE_CPUS,
    MIN_NODE_MEMORY_GB,
    STORAGE_ACCOUNT_PREMIUM_LRS,
    STORAGE_ACCOUNT_STANDARD_LRS,
)
from azure_admission.errors import InvalidOperationError
from azure_admission.models.machinepool import AzureMachinePool
from azure_admission.vmcapabilities import VMCapabilityCache
from azure_admission.webhooks.common import (
    AdmissionEngines,
    ResourcePolicy,
    normalize_organization_label,
    register_policy,
    run_mutation,
    run_validation,
)

logger = logging.getLogger(__name__)

KIND_AZURE_MACHINE_POOL = "AzureMachinePool"


async def check_instance_type(
    capabilities: VMCapabilityCache, location: str, vm_size: str
) -> None:
    memory = await capabilities.memory(location, vm_size)
    cpus = await capabilities.cpus(location, vm_size)

    if memory < MIN_NODE_MEMORY_GB:
        raise InvalidOperationError(
            f"VM size {vm_size} has {memory} GB of memory, "
            f"at least {MIN_NODE_MEMORY_GB} GB are required"
        )
    if cpus < MIN_NODE_CPUS:
        raise InvalidOperationError(
            f"VM size {vm_size} has {cpus} vCPUs, at least {MIN_NODE_CPUS} are required"
        )


async def check_accelerated_networking(
    capabilities: VMCapabilityCache, pool: AzureMachinePool
) -> None:
    # Disabled (False) or auto-detect (None) is always allowed
    if not pool.spec.template.accelerated_networking:
        return

    supported = await capabilities.has_capability(
        pool.spec.location, pool.spec.template.vm_size, CAPABILITY_ACCELERATED_NETWORKING
    )
    if not supported:
        raise InvalidOperationError(
            f"VM size {pool.spec.template.vm_size} does not support AcceleratedNetworking"
        )


async def check_storage_account_type(
    capabilities: VMCapabilityCache, pool: AzureMachinePool
) -> None:
    storage_account_type = pool.spec.template.storage_account_type
    if storage_account_type not in ALLOWED_STORAGE_ACCOUNT_TYPES:
        raise InvalidOperationError(
            f"Storage account type {storage_account_type!r} is invalid. "
            f"Allowed values are {', '.join(ALLOWED_STORAGE_ACCOUNT_TYPES)}"
        )

    if storage_account_type == STORAGE_ACCOUNT_PREMIUM_LRS:
        supported = await capabilities.has_capability(
            pool.spec.location, pool.spec.template.vm_size, CAPABILITY_PREMIUM_IO
        )
        if not supported:
            raise InvalidOperationError(
                f"VM size {pool.spec.template.vm_size} does not support Premium Storage"
            )


_DATA_DISK_FIELDS = ("nameSuffix", "diskSizeGB", "lun")


def check_data_disks(pool: AzureMachinePool) -> None:
    disks = [
        {field: disk.get(field) for field in _DATA_DISK_FIELDS}
        for disk in pool.spec.template.data_disks
    ]
    if disks != list(DESIRED_DATA_DISKS):
        raise InvalidOperationError(
            "AzureMachinePool.Spec.Template.DataDisks does not have required value",
            user_action="Leave dataDisks unset to get the docker and kubelet disks",
        )


def check_location(pool: AzureMachinePool, installation_location: str) -> None:
    if installation_location and pool.spec.location != installation_location:
        raise InvalidOperationError(
            f"AzureMachinePool.Spec.Location must be {installation_location!r}, "
            f"got {pool.spec.location!r}"
        )


def check_ssh_key_empty(pool: AzureMachinePool) -> None:
    if pool.spec.template.ssh_public_key:
        raise InvalidOperationError(
            "AzureMachinePool.Spec.Template.SSHPublicKey is unsupported and must be empty"
        )


class AzureMachinePoolPolicy(ResourcePolicy):
    kind = KIND_AZURE_MACHINE_POOL
    model = AzureMachinePool

    async def validate_create(
        self, engines: AdmissionEngines, new: AzureMachinePool
    ) -> None:
        check_location(new, engines.installation_location)
        capabilities = engines.require_capabilities()
        await check_instance_type(
            capabilities, new.spec.location, new.spec.template.vm_size
        )
        await check_accelerated_networking(capabilities, new)
        await check_storage_account_type(capabilities, new)
        check_ssh_key_empty(new)
        check_data_disks(new)

    async def mutate_create(
        self,
        engines: AdmissionEngines,
        new: AzureMachinePool,
        document: dict[str, Any],
        dryrun: bool,
    ) -> None:
        if dryrun:
            logger.debug("Dry run is not supported, skipping AzureMachinePool mutation")
            return

        normalize_organization_label(document)

        spec = document.setdefault("spec", {})
        if not spec.get("location") and engines.installation_location:
            spec["location"] = engines.installation_location

        template = spec.setdefault("template", {})
        if not template.get("dataDisks"):
            template["dataDisks"] = copy.deepcopy(list(DESIRED_DATA_DISKS))

        managed_disk = template.setdefault("osDisk", {}).setdefault("managedDisk", {})
        if not managed_disk.get("storageAccountType"):
            premium = await engines.require_capabilities().has_capability(
                spec.get("location", ""), template.get("vmSize", ""), CAPABILITY_PREMIUM_IO
            )
            managed_disk["storageAccountType"] = (
                STORAGE_ACCOUNT_PREMIUM_LRS if premium else STORAGE_ACCOUNT_STANDARD_LRS
            )

    async def validate_update(
        self, engines: AdmissionEngines, old: AzureMachinePool, new: AzureMachinePool
    ) -> None:
        old_template = old.spec.template
        new_template = new.spec.template

        if old_template.accelerated_networking != new_template.accelerated_networking:
            raise InvalidOperationError(
                "It is not possible to change the AcceleratedNetworking on an existing node pool"
            )
        if old_template.storage_account_type != new_template.storage_account_type:
            raise InvalidOperationError(
                "It is not possible to change the storage account type on an existing node pool"
            )

        if old_template.vm_size == new_template.vm_size:
            return

        # A resized pool must keep every feature it already uses
        capabilities = engines.require_capabilities()
        await check_instance_type(capabilities, new.spec.location, new_template.vm_size)
        await check_accelerated_networking(capabilities, new)
        await check_storage_account_type(capabilities, new)


AZURE_MACHINE_POOL_POLICY = register_policy(AzureMachinePoolPolicy())


@kopf.on.validate(
    CAPZ_GROUP, CAPZ_EXP_VERSION, "azuremachinepools", id="validate-azuremachinepool"
)
async def validate_azuremachinepool(
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
    Validate AzureMachinePool resource before admission.

    Raises:
        kopf.AdmissionError: If validation fails
    """
    await run_validation(
        KIND_AZURE_MACHINE_POOL,
        body=body,
        old=old,
        name=name,
        namespace=namespace,
        operation=operation,
        dryrun=dryrun,
        memo=memo,
    )
    return {}


@kopf.on.mutate(
    CAPZ_GROUP, CAPZ_EXP_VERSION, "azuremachinepools", id="mutate-azuremachinepool"
)
async def mutate_azuremachinepool(
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
    Default AzureMachinePool fields before admission.

    Raises:
        kopf.AdmissionError: If the object cannot be mutated
    """
    await run_mutation(
        KIND_AZURE_MACHINE_POOL,
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
