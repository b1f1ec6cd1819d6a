"""
Error handling module for the admission controller.

This module provides the error hierarchy shared by the decision engines and
the translation of engine failures into admission rejections.
"""

from .admission_errors import (
    AdmissionControllerError,
    ConfigurationError,
    ErrorKind,
    InvalidOperationError,
    InvalidRequestError,
    NotFoundError,
    PatchApplicationError,
    SerializationError,
    SkuNotFoundError,
    UpgradeDeniedError,
    UpstreamInvalidResponseError,
    UpstreamUnavailableError,
    is_invalid_request,
    is_not_found,
    is_policy_denial,
    is_upstream_invalid_response,
    is_upstream_unavailable,
)

__all__ = [
    "AdmissionControllerError",
    "ErrorKind",
    "InvalidRequestError",
    "SerializationError",
    "PatchApplicationError",
    "NotFoundError",
    "SkuNotFoundError",
    "UpstreamInvalidResponseError",
    "UpstreamUnavailableError",
    "InvalidOperationError",
    "ConfigurationError",
    "UpgradeDeniedError",
    "is_invalid_request",
    "is_not_found",
    "is_upstream_invalid_response",
    "is_upstream_unavailable",
    "is_policy_denial",
]
