"""
Observability utilities for the admission controller.

This module provides metrics and structured logging capabilities for
production monitoring and troubleshooting.
"""

from .logging import AdmissionLogger, setup_structured_logging
from .metrics import MetricsServer, get_metrics_registry, metrics_collector

__all__ = [
    "MetricsServer",
    "get_metrics_registry",
    "metrics_collector",
    "AdmissionLogger",
    "setup_structured_logging",
]
