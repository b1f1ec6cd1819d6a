"""
Admission webhooks for Cluster API Cluster resources.

On create the cluster network and control plane endpoint must match the
installation defaults, which the mutating webhook fills in.

On update this webhook enforces:
- Organization label present and unchanged
- Cluster network and control plane endpoint unchanged
- No release change while the cluster is being created or upgraded
- Release transitions allowed by the upgrade validator
"""

import logging
from typing import Any

import kopf

from azure_admission.constants import (
    CAPI_GROUP,
    CAPI_VERSION,
    CLUSTER_API_SERVER_PORT,
    CONDITION_CREATING,
    CONDITION_UPGRADING,
    CONTROL_PLANE_ENDPOINT_PORT,
    DEFAULT_SERVICE_CIDR,
    KIND_CLUSTER,
)
from azure_admission.errors import ConfigurationError, InvalidOperationError
from azure_admission.models.cluster import APIEndpoint, Cluster, LabelledResource
from azure_admission.observability.metrics import metrics_collector
from azure_admission.webhooks.common import (
    AdmissionEngines,
    ResourcePolicy,
    normalize_organization_label,
    parse_release_label,
    register_policy,
    run_mutation,
    run_validation,
)

logger = logging.getLogger(__name__)


def control_plane_endpoint_host(cluster_name: str, base_domain: str) -> str:
    return f"api.{cluster_name}.{base_domain}"


def service_domain(cluster_name: str, base_domain: str) -> str:
    return f"{cluster_name}.{base_domain}"


def validate_control_plane_endpoint(
    endpoint: APIEndpoint, cluster_name: str, base_domain: str
) -> None:
    if base_domain:
        host = control_plane_endpoint_host(cluster_name, base_domain)
        if endpoint.host != host:
            raise InvalidOperationError(
                f"ControlPlaneEndpoint.Host can only be set to {host}"
            )
    if endpoint.port != CONTROL_PLANE_ENDPOINT_PORT:
        raise InvalidOperationError(
            f"ControlPlaneEndpoint.Port can only be set to {CONTROL_PLANE_ENDPOINT_PORT}"
        )


def default_control_plane_endpoint(
    spec: dict[str, Any], cluster_name: str, base_domain: str
) -> None:
    endpoint = spec.setdefault("controlPlaneEndpoint", {})
    if not endpoint.get("host"):
        if not base_domain:
            raise ConfigurationError(
                "Base domain is required to default the control plane endpoint",
                user_action="Set BASE_DOMAIN",
            )
        endpoint["host"] = control_plane_endpoint_host(cluster_name, base_domain)
    if not endpoint.get("port"):
        endpoint["port"] = CONTROL_PLANE_ENDPOINT_PORT


def validate_cluster_network(cluster: Cluster, base_domain: str) -> None:
    network = cluster.spec.cluster_network
    if not network:
        raise InvalidOperationError("Cluster.Spec.ClusterNetwork must be set")

    if network.get("apiServerPort") != CLUSTER_API_SERVER_PORT:
        raise InvalidOperationError(
            f"ClusterNetwork.APIServerPort can only be set to {CLUSTER_API_SERVER_PORT}"
        )
    if base_domain:
        expected = service_domain(cluster.name, base_domain)
        if network.get("serviceDomain") != expected:
            raise InvalidOperationError(
                f"ClusterNetwork.ServiceDomain can only be set to {expected}"
            )
    services = network.get("services") or {}
    if not services.get("cidrBlocks"):
        raise InvalidOperationError("ClusterNetwork.Services.CIDRBlocks must be set")


def validate_organization_unchanged(
    old: LabelledResource, new: LabelledResource
) -> None:
    if not new.organization:
        raise InvalidOperationError(
            "Organization label giantswarm.io/organization must be set",
            user_action="Restore the organization label",
        )
    if old.organization != new.organization:
        raise InvalidOperationError(
            f"Organization label can't be changed "
            f"(from {old.organization!r} to {new.organization!r})"
        )


async def validate_release_transition(
    engines: AdmissionEngines, old: LabelledResource, new: LabelledResource, what: str
) -> None:
    """Deny release label changes the upgrade validator does not allow."""
    old_version = parse_release_label(old.release_version, f"{what} being updated")
    new_version = parse_release_label(new.release_version, f"applied {what}")

    decision = await engines.upgrades.validate(old_version, new_version)
    metrics_collector.record_upgrade_decision(decision.allowed, decision.reason.value)
    decision.raise_for_denial()


class ClusterPolicy(ResourcePolicy):
    kind = KIND_CLUSTER
    model = Cluster

    async def validate_create(self, engines: AdmissionEngines, new: Cluster) -> None:
        validate_cluster_network(new, engines.base_domain)
        validate_control_plane_endpoint(
            new.spec.control_plane_endpoint or APIEndpoint(),
            new.name,
            engines.base_domain,
        )

    async def mutate_create(
        self,
        engines: AdmissionEngines,
        new: Cluster,
        document: dict[str, Any],
        dryrun: bool,
    ) -> None:
        if dryrun:
            logger.debug("Dry run is not supported, skipping Cluster mutation")
            return

        normalize_organization_label(document)

        spec = document.setdefault("spec", {})
        network = spec.get("clusterNetwork")
        if not network:
            network = spec["clusterNetwork"] = {
                "apiServerPort": CLUSTER_API_SERVER_PORT,
                "services": {"cidrBlocks": [DEFAULT_SERVICE_CIDR]},
            }
        if not network.get("serviceDomain") and engines.base_domain:
            network["serviceDomain"] = service_domain(new.name, engines.base_domain)

        default_control_plane_endpoint(spec, new.name, engines.base_domain)

    async def validate_update(
        self, engines: AdmissionEngines, old: Cluster, new: Cluster
    ) -> None:
        validate_organization_unchanged(old, new)

        if old.spec.cluster_network != new.spec.cluster_network:
            raise InvalidOperationError("Cluster.Spec.ClusterNetwork can't be changed")

        old_endpoint = old.spec.control_plane_endpoint
        if (
            old_endpoint is not None
            and not old_endpoint.is_zero
            and old_endpoint != new.spec.control_plane_endpoint
        ):
            raise InvalidOperationError("Cluster.Spec.ControlPlaneEndpoint can't be changed")

        if old.release_version != new.release_version:
            for condition in (CONDITION_CREATING, CONDITION_UPGRADING):
                if old.condition_is_true(condition):
                    raise InvalidOperationError(
                        f"Release version can't be changed while condition "
                        f"{condition} is True",
                        user_action="Wait until the current operation finishes",
                    )

        await validate_release_transition(engines, old, new, "Cluster")


CLUSTER_POLICY = register_policy(ClusterPolicy())


@kopf.on.validate(CAPI_GROUP, CAPI_VERSION, "clusters", id="validate-cluster")
async def validate_cluster(
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
    Validate Cluster resource before admission.

    Raises:
        kopf.AdmissionError: If validation fails
    """
    await run_validation(
        KIND_CLUSTER,
        body=body,
        old=old,
        name=name,
        namespace=namespace,
        operation=operation,
        dryrun=dryrun,
        memo=memo,
    )
    return {}


@kopf.on.mutate(CAPI_GROUP, CAPI_VERSION, "clusters", id="mutate-cluster")
async def mutate_cluster(
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
    Default Cluster network and control plane endpoint before admission.

    Raises:
        kopf.AdmissionError: If the object cannot be mutated
    """
    await run_mutation(
        KIND_CLUSTER,
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
