"""
Validating admission webhook for AzureMachine resources.

The failure domain of a machine must be one of the availability zones its VM
size offers in the installation's region, and cannot change afterwards.
"""

import logging

import kopf

from azure_admission.constants import CAPZ_GROUP, CAPZ_VERSION
from azure_admission.errors import ConfigurationError, InvalidOperationError
from azure_admission.models.machinepool import AzureMachine
from azure_admission.webhooks.common import (
    AdmissionEngines,
    ResourcePolicy,
    register_policy,
    run_validation,
)

logger = logging.getLogger(__name__)

KIND_AZURE_MACHINE = "AzureMachine"


class AzureMachinePolicy(ResourcePolicy):
    kind = KIND_AZURE_MACHINE
    model = AzureMachine

    async def _validate_failure_domain(
        self, engines: AdmissionEngines, machine: AzureMachine
    ) -> None:
        failure_domain = machine.failure_domain
        if failure_domain is None:
            return

        location = engines.installation_location
        if not location:
            raise ConfigurationError(
                "Installation location is required to validate failure domains",
                user_action="Set INSTALLATION_LOCATION",
            )

        capabilities = engines.require_capabilities()
        zones = await capabilities.supported_zones(location, machine.spec.vm_size)
        if failure_domain in zones:
            return

        if not zones:
            raise InvalidOperationError(
                f"Location {location} does not support specifying a Failure Domain "
                f"for VM size {machine.spec.vm_size} and the Failure Domain "
                f"{failure_domain} was selected"
            )
        raise InvalidOperationError(
            f"Location {location} supports Failure Domains {', '.join(zones)} "
            f"for VM size {machine.spec.vm_size} but got {failure_domain}"
        )

    async def validate_create(
        self, engines: AdmissionEngines, new: AzureMachine
    ) -> None:
        await self._validate_failure_domain(engines, new)

    async def validate_update(
        self, engines: AdmissionEngines, old: AzureMachine, new: AzureMachine
    ) -> None:
        # None and "" are synonyms
        if old.failure_domain != new.failure_domain:
            raise InvalidOperationError("AzureMachine.Spec.FailureDomain can't be changed")
        if old.spec.vm_size != new.spec.vm_size:
            await self._validate_failure_domain(engines, new)


AZURE_MACHINE_POLICY = register_policy(AzureMachinePolicy())


@kopf.on.validate(CAPZ_GROUP, CAPZ_VERSION, "azuremachines", id="validate-azuremachine")
async def validate_azuremachine(
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
    Validate AzureMachine resource before admission.

    Raises:
        kopf.AdmissionError: If validation fails
    """
    await run_validation(
        KIND_AZURE_MACHINE,
        body=body,
        old=old,
        name=name,
        namespace=namespace,
        operation=operation,
        dryrun=dryrun,
        memo=memo,
    )
    return {}
