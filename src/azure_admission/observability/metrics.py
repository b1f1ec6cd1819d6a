"""
Prometheus metrics for the admission controller.

This module provides metrics for admission reviews, release upgrade
decisions and the VM capability cache.
"""

import logging
import time
from contextlib import asynccontextmanager

# aiohttp is provided by kopf; the metrics server reuses it
from aiohttp.web import (
    Application,
    AppRunner,
    Request,
    Response,
    TCPSite,
)
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global metrics registry
_metrics_registry: CollectorRegistry | None = None

ADMISSION_REVIEWS_TOTAL = Counter(
    "azure_admission_reviews_total",
    "Total number of admission reviews",
    ["resource_kind", "operation", "webhook", "result"],
    registry=None,  # Will be set during initialization
)

ADMISSION_REVIEW_DURATION = Histogram(
    "azure_admission_review_duration_seconds",
    "Time spent answering admission reviews",
    ["resource_kind", "operation", "webhook"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=None,
)

ADMISSION_ERRORS_TOTAL = Counter(
    "azure_admission_errors_total",
    "Total number of rejected admission reviews by error kind",
    ["resource_kind", "error_kind", "policy_denial"],
    registry=None,
)

UPGRADE_DECISIONS_TOTAL = Counter(
    "azure_admission_upgrade_decisions_total",
    "Release upgrade decisions by reason",
    ["allowed", "reason"],
    registry=None,
)

CAPABILITY_CACHE_LOOKUPS_TOTAL = Counter(
    "azure_admission_capability_cache_lookups_total",
    "VM capability lookups by cache outcome",
    ["result"],
    registry=None,
)

CAPABILITY_FETCH_TOTAL = Counter(
    "azure_admission_capability_fetch_total",
    "Region capability fetches from the Azure Resource SKU API",
    ["result"],
    registry=None,
)

CAPABILITY_FETCH_DURATION = Histogram(
    "azure_admission_capability_fetch_duration_seconds",
    "Time spent fetching the capability list of a region",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=None,
)

_ALL_METRICS = [
    ADMISSION_REVIEWS_TOTAL,
    ADMISSION_REVIEW_DURATION,
    ADMISSION_ERRORS_TOTAL,
    UPGRADE_DECISIONS_TOTAL,
    CAPABILITY_CACHE_LOOKUPS_TOTAL,
    CAPABILITY_FETCH_TOTAL,
    CAPABILITY_FETCH_DURATION,
]


def get_metrics_registry() -> CollectorRegistry:
    """Get or create the global metrics registry."""
    global _metrics_registry
    if _metrics_registry is None:
        _metrics_registry = CollectorRegistry()
        for metric in _ALL_METRICS:
            _metrics_registry.register(metric)
    return _metrics_registry


class MetricsCollector:
    """Collects and manages metrics for the admission controller."""

    def __init__(self):
        self.registry = get_metrics_registry()

    @asynccontextmanager
    async def track_admission(
        self,
        resource_kind: str,
        operation: str,
        webhook: str = "validate",
    ):
        """
        Context manager to track one admission review.

        Args:
            resource_kind: Kind of the reviewed resource
            operation: CREATE or UPDATE
            webhook: validate or mutate
        """
        start_time = time.perf_counter()
        result = "unknown"
        try:
            yield
            result = "allowed"
        except Exception as e:
            result = "denied"
            kind = getattr(e, "kind", None)
            ADMISSION_ERRORS_TOTAL.labels(
                resource_kind=resource_kind,
                error_kind=kind.value if kind is not None else type(e).__name__,
                policy_denial="true" if getattr(e, "is_policy_denial", False) else "false",
            ).inc()
            raise
        finally:
            duration = time.perf_counter() - start_time
            ADMISSION_REVIEWS_TOTAL.labels(
                resource_kind=resource_kind,
                operation=operation,
                webhook=webhook,
                result=result,
            ).inc()
            ADMISSION_REVIEW_DURATION.labels(
                resource_kind=resource_kind, operation=operation, webhook=webhook
            ).observe(duration)

    def record_upgrade_decision(self, allowed: bool, reason: str) -> None:
        UPGRADE_DECISIONS_TOTAL.labels(
            allowed="true" if allowed else "false", reason=reason
        ).inc()

    def record_capability_lookup(self, hit: bool) -> None:
        CAPABILITY_CACHE_LOOKUPS_TOTAL.labels(result="hit" if hit else "miss").inc()

    def record_capability_fetch(self, success: bool, duration: float) -> None:
        """
        Record one region fetch from the capability source.

        Args:
            success: Whether the fetch produced a table
            duration: Time taken for the fetch
        """
        CAPABILITY_FETCH_TOTAL.labels(result="success" if success else "failure").inc()
        CAPABILITY_FETCH_DURATION.observe(duration)


class MetricsServer:
    """HTTP server for exposing Prometheus metrics."""

    def __init__(self, port: int = 8081, host: str = "0.0.0.0"):
        """
        Initialize metrics server.

        Args:
            port: Port to serve metrics on
            host: Host interface to bind to
        """
        self.port = port
        self.host = host
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None

        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        try:
            registry = get_metrics_registry()
            metrics_data = generate_latest(registry)
            return Response(body=metrics_data, content_type=CONTENT_TYPE_LATEST)
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )

    async def _healthz_handler(self, request: Request) -> Response:
        """Handle /healthz endpoint for Kubernetes probes."""
        return Response(text="ok")

    async def start(self) -> None:
        """Start the metrics server."""
        self.runner = AppRunner(self.app)
        await self.runner.setup()
        self.site = TCPSite(self.runner, self.host, self.port)
        await self.site.start()
        logger.info(f"Metrics server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the metrics server."""
        if self.site:
            await self.site.stop()
            self.site = None
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
        logger.info("Metrics server stopped")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()


# Global metrics collector instance
metrics_collector = MetricsCollector()
