"""
Structured logging utilities for the admission controller.

This module provides correlation ID tracking per admission review and
structured JSON log formatting for production troubleshooting.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variable for tracking correlation IDs across async operations
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Paths that should be filtered from access logs (health probes)
HEALTH_PROBE_PATHS = frozenset({"/healthz", "/metrics"})

# Extra attributes copied into JSON log lines when present on the record
STRUCTURED_FIELDS = (
    "resource_kind",
    "resource_name",
    "namespace",
    "operation",
    "dryrun",
    "duration",
    "error_type",
    "error_kind",
    "reason",
    "allowed",
    "region",
    "instance_type",
    "sku_count",
    "patch_count",
    "old_release",
    "new_release",
)


class HealthProbeFilter(logging.Filter):
    """
    Logging filter that suppresses health probe and metrics endpoint logs.

    These endpoints are hit frequently by Kubernetes probes and Prometheus,
    generating noise in logs during debugging.
    """

    def __init__(self, suppress_health_logs: bool = True):
        super().__init__()
        self.suppress_health_logs = suppress_health_logs

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.suppress_health_logs:
            return True

        message = record.getMessage()
        return all(path not in message for path in HEALTH_PROBE_PATHS)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        current_correlation_id = correlation_id.get()
        if not current_correlation_id:
            current_correlation_id = generate_correlation_id()
            correlation_id.set(current_correlation_id)

        record.correlation_id = current_correlation_id
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs with correlation ID support.

    Formats log records as structured JSON for parsing in log aggregation
    systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields are set as attributes on the record
        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        Unique correlation ID string
    """
    return str(uuid.uuid4())[:8]


def set_correlation_id(corr_id: str) -> str:
    """
    Set the correlation ID for the current context.

    Args:
        corr_id: Correlation ID to set

    Returns:
        The correlation ID that was set
    """
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    """Get the current correlation ID, or empty string if none set."""
    return correlation_id.get("")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
    log_health_probes: bool = False,
    webhook_log_level: str = "INFO",
) -> None:
    """
    Set up structured logging for the admission controller.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Whether to use JSON formatting
        correlation_id_enabled: Whether to enable correlation ID tracking
        log_health_probes: Whether to log health probe requests (default: False)
        webhook_log_level: Log level for the admission webhook handlers
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if enable_json_formatting:
        formatter: logging.Formatter = StructuredFormatter()
    elif correlation_id_enabled:
        formatter = logging.Formatter(
            "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())

    if not log_health_probes:
        handler.addFilter(HealthProbeFilter(suppress_health_logs=True))

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Third-party libraries
    logging.getLogger("kopf").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)

    # aiohttp access logs are dominated by probe requests
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.server").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.web").setLevel(logging.WARNING)

    webhook_level = getattr(logging, webhook_log_level.upper(), logging.INFO)
    logging.getLogger("azure_admission.webhooks").setLevel(webhook_level)


class AdmissionLogger:
    """
    Logger for admission reviews with structured logging support.

    Provides convenient methods for logging the lifecycle of a review with
    correlation ID tracking and structured data.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_review_start(
        self,
        resource_kind: str,
        resource_name: str,
        namespace: str | None,
        operation: str,
        dryrun: bool = False,
        correlation_id: str | None = None,
    ) -> str:
        """
        Log the start of an admission review.

        Returns:
            The correlation ID used for this review
        """
        if correlation_id is None:
            correlation_id = generate_correlation_id()

        set_correlation_id(correlation_id)

        self.logger.debug(
            f"Reviewing {operation} of {resource_kind} {resource_name}",
            extra={
                "resource_kind": resource_kind,
                "resource_name": resource_name,
                "namespace": namespace,
                "operation": operation,
                "dryrun": dryrun,
            },
        )

        return correlation_id

    def log_review_allowed(
        self,
        resource_kind: str,
        resource_name: str,
        operation: str,
        duration: float,
        patch_count: int | None = None,
    ) -> None:
        extra = {
            "resource_kind": resource_kind,
            "resource_name": resource_name,
            "operation": operation,
            "allowed": True,
            "duration": duration,
        }
        if patch_count is not None:
            extra["patch_count"] = patch_count
        self.logger.info(
            f"Admitted {operation} of {resource_kind} {resource_name}", extra=extra
        )

    def log_review_denied(
        self,
        resource_kind: str,
        resource_name: str,
        operation: str,
        error: Exception,
        duration: float,
    ) -> None:
        """
        Log a rejected review.

        Policy denials are expected outcomes and logged at INFO; anything else
        is a system fault and logged as an error with traceback.
        """
        kind = getattr(error, "kind", None)
        policy_denial = bool(getattr(error, "is_policy_denial", False))
        extra = {
            "resource_kind": resource_kind,
            "resource_name": resource_name,
            "operation": operation,
            "allowed": False,
            "duration": duration,
            "error_type": type(error).__name__,
            "error_kind": kind.value if kind is not None else None,
        }
        message = f"Rejected {operation} of {resource_kind} {resource_name}: {error}"
        if policy_denial or getattr(kind, "value", None) == "InvalidRequest":
            self.logger.info(message, extra=extra)
        else:
            self.logger.error(message, extra=extra, exc_info=error)
