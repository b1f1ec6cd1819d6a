#!/usr/bin/env python3
"""
Azure Admission Controller - Main entry point for the Kopf-based admission webhooks.

The controller serves validating and mutating admission webhooks for Cluster
API resources on Azure: Cluster, AzureCluster, AzureMachinePool and
AzureMachine. Decision engines (release upgrade validator, VM capability
cache, patch generator) are built once at startup and shared through the
kopf memo.

Usage:
    python -m azure_admission.operator
    # Or with kopf directly:
    kopf run -m azure_admission.operator --all-namespaces

Environment Variables:
    See azure_admission.settings.Settings
"""

import logging
import sys

import kopf

from azure_admission.constants import (
    ADMISSION_TIMEOUT,
    CAPABILITY_FETCH_TIMEOUT,
    CATALOG_READ_TIMEOUT,
    RELEASE_COMPONENTS_CACHE_TTL,
)
from azure_admission.observability.logging import setup_structured_logging
from azure_admission.observability.metrics import MetricsServer
from azure_admission.releases import ReleaseUpgradeValidator, VersionCatalogReader
from azure_admission.settings import settings as controller_settings
from azure_admission.utils.kubernetes import (
    KubernetesObjectStore,
    load_kubernetes_config,
)
from azure_admission.vmcapabilities import AzureResourceSkuSource, VMCapabilityCache
from azure_admission.webhooks.common import AdmissionEngines

# Kopf refuses to start when admission handlers are registered without an
# admission server, so webhook modules are only imported when enabled.
if controller_settings.enable_webhooks:
    from azure_admission.webhooks import azurecluster  # noqa: F401
    from azure_admission.webhooks import azuremachine  # noqa: F401
    from azure_admission.webhooks import azuremachinepool  # noqa: F401
    from azure_admission.webhooks import cluster  # noqa: F401

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure structured logging based on controller_settings."""
    setup_structured_logging(
        log_level=controller_settings.log_level.upper(),
        enable_json_formatting=controller_settings.json_logs,
        correlation_id_enabled=controller_settings.correlation_ids,
        webhook_log_level=controller_settings.webhook_log_level,
    )


def build_engines(
    store: KubernetesObjectStore,
    capability_source: AzureResourceSkuSource | None,
) -> AdmissionEngines:
    """Wire the decision engines from settings."""
    catalog = VersionCatalogReader(
        store, components_cache_ttl=RELEASE_COMPONENTS_CACHE_TTL
    )
    capabilities = None
    if capability_source is not None:
        capabilities = VMCapabilityCache(
            capability_source, fetch_timeout=CAPABILITY_FETCH_TIMEOUT
        )
    return AdmissionEngines(
        store=store,
        catalog=catalog,
        upgrades=ReleaseUpgradeValidator(catalog),
        capabilities=capabilities,
        installation_location=controller_settings.installation_location,
        base_domain=controller_settings.base_domain,
        admission_timeout=ADMISSION_TIMEOUT,
    )


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Controller startup.

    Loads the Kubernetes configuration, builds the decision engines and
    starts the metrics server.
    """
    logger.info("Starting Azure Admission Controller...")

    settings.watching.reconnect_backoff = 1.0

    load_kubernetes_config()

    capability_source = None
    if controller_settings.azure_credentials_configured:
        capability_source = AzureResourceSkuSource.from_settings(controller_settings)
        logger.info(
            f"VM capability lookups enabled for subscription "
            f"{controller_settings.azure_subscription_id}"
        )
    else:
        logger.warning(
            "Azure credentials are not configured; node pool and machine "
            "validation will reject requests"
        )
    memo.capability_source = capability_source

    store = KubernetesObjectStore(request_timeout=CATALOG_READ_TIMEOUT)
    memo.engines = build_engines(store, capability_source)

    memo.metrics_server = None
    if controller_settings.metrics_enabled:
        try:
            metrics_server = MetricsServer(
                port=controller_settings.metrics_port,
                host=controller_settings.metrics_host,
            )
            await metrics_server.start()
            memo.metrics_server = metrics_server
        except OSError as e:
            # Admission must keep working without metrics
            logger.error(f"Failed to start metrics server: {e}")
            logger.warning("Continuing without metrics server")


@kopf.on.cleanup()
async def cleanup_handler(memo: kopf.Memo, **_) -> None:
    """Close the Azure client and stop the metrics server."""
    logger.info("Shutting down Azure Admission Controller...")

    capability_source = getattr(memo, "capability_source", None)
    if capability_source is not None:
        await capability_source.aclose()

    metrics_server = getattr(memo, "metrics_server", None)
    if metrics_server is not None:
        await metrics_server.stop()


@kopf.on.probe(id="capability_regions")
async def capability_regions_probe(memo: kopf.Memo, **_) -> list[str]:
    """Regions whose VM capabilities are cached."""
    engines = getattr(memo, "engines", None)
    if engines is None or engines.capabilities is None:
        return []
    return engines.capabilities.cached_regions()


def main() -> None:
    """
    Main entry point for the controller.

    Configures logging and the admission webhook server, then runs kopf.
    """
    configure_logging()

    settings_obj = kopf.OperatorSettings()
    if controller_settings.enable_webhooks:
        cert_dir = controller_settings.webhook_cert_dir
        settings_obj.admission.server = kopf.WebhookServer(
            port=controller_settings.webhook_port,
            host=controller_settings.webhook_host,
            certfile=f"{cert_dir}/tls.crt",
            pkeyfile=f"{cert_dir}/tls.key",
        )
        # Webhook configurations are managed by the Helm chart
        settings_obj.admission.managed = None
        logger.info(
            f"Admission webhooks ENABLED on port {controller_settings.webhook_port} "
            f"using certificates from {cert_dir}"
        )
    else:
        settings_obj.admission.server = None
        settings_obj.admission.managed = None
        logger.info("Admission webhooks DISABLED")

    try:
        kopf.run(
            clusterwide=True,
            liveness_endpoint="http://0.0.0.0:8080/healthz",
            settings=settings_obj,
        )
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Controller failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
