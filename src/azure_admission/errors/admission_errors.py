"""
Admission controller error hierarchy with kind classification.

This module defines the error types used throughout the admission controller,
providing a closed set of error kinds and the translation of each kind into
a kopf admission rejection.
"""

from enum import Enum
from typing import TYPE_CHECKING

import kopf

if TYPE_CHECKING:
    from azure_admission.releases.upgrade import UpgradeDecision


class ErrorKind(str, Enum):
    """Closed set of failure kinds raised by the decision engines."""

    INVALID_REQUEST = "InvalidRequest"
    NOT_FOUND = "NotFound"
    UPSTREAM_INVALID_RESPONSE = "UpstreamInvalidResponse"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    RELEASE_NOT_FOUND = "ReleaseNotFound"
    DOWNGRADE = "Downgrade"
    ALPHA_BOUNDARY = "AlphaBoundary"
    RELEASE_SKIPPED = "ReleaseSkipped"
    INVALID_OPERATION = "InvalidOperation"
    CONFIGURATION = "Configuration"
    INTERNAL = "Internal"


POLICY_DENIAL_KINDS = frozenset(
    {
        ErrorKind.NOT_FOUND,
        ErrorKind.RELEASE_NOT_FOUND,
        ErrorKind.DOWNGRADE,
        ErrorKind.ALPHA_BOUNDARY,
        ErrorKind.RELEASE_SKIPPED,
        ErrorKind.INVALID_OPERATION,
    }
)


class AdmissionControllerError(Exception):
    """
    Base error class for all admission controller exceptions.

    Carries the error kind, the underlying cause and optional user guidance.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        cause: BaseException | None = None,
        user_action: str | None = None,
    ):
        """
        Initialize admission controller error.

        Args:
            message: Human-readable error description
            kind: Error kind used by callers to decide how to answer the review
            cause: Underlying exception that caused this error
            user_action: What the user should do to resolve the issue
        """
        super().__init__(message)
        self.kind = kind
        self.cause = cause
        self.user_action = user_action

    @property
    def is_policy_denial(self) -> bool:
        """Whether this error is a policy verdict rather than a system fault."""
        return self.kind in POLICY_DENIAL_KINDS

    def as_admission_error(self) -> kopf.AdmissionError:
        """Convert to the kopf exception that rejects the admission review."""
        if self.is_policy_denial or self.kind == ErrorKind.INVALID_REQUEST:
            return kopf.AdmissionError(str(self), code=400)
        return kopf.AdmissionError(f"Internal error: {self}", code=500)

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class InvalidRequestError(AdmissionControllerError):
    """The caller supplied an input that can never succeed."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        user_action: str | None = None,
        cause: BaseException | None = None,
    ):
        if field:
            message = f"Invalid value for field '{field}': {message}"
        super().__init__(
            message=message,
            kind=ErrorKind.INVALID_REQUEST,
            cause=cause,
            user_action=user_action,
        )


class SerializationError(AdmissionControllerError):
    """A document could not be converted into its canonical JSON tree."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(
            message=f"Serialization failed: {message}",
            kind=ErrorKind.INVALID_REQUEST,
            cause=cause,
        )


class PatchApplicationError(AdmissionControllerError):
    """A generated patch could not be applied to the document it was computed from."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(
            message=f"Patch application failed: {message}",
            kind=ErrorKind.INTERNAL,
            cause=cause,
        )


class NotFoundError(AdmissionControllerError):
    """A referenced object does not exist."""

    def __init__(self, message: str, user_action: str | None = None):
        super().__init__(
            message=message, kind=ErrorKind.NOT_FOUND, user_action=user_action
        )


class SkuNotFoundError(NotFoundError):
    """The instance type is not offered in the requested region."""

    def __init__(self, region: str, instance_type: str):
        super().__init__(
            message=f"VM size '{instance_type}' is not available in region '{region}'",
            user_action="Choose a VM size offered in the cluster's region",
        )
        self.region = region
        self.instance_type = instance_type


class UpstreamInvalidResponseError(AdmissionControllerError):
    """An upstream service returned data that could not be interpreted."""

    def __init__(
        self, service: str, message: str, cause: BaseException | None = None
    ):
        super().__init__(
            message=f"{service} returned an invalid response: {message}",
            kind=ErrorKind.UPSTREAM_INVALID_RESPONSE,
            cause=cause,
        )
        self.service = service


class UpstreamUnavailableError(AdmissionControllerError):
    """An upstream service could not be reached or answered with an error."""

    def __init__(
        self, service: str, message: str, cause: BaseException | None = None
    ):
        super().__init__(
            message=f"{service} unavailable: {message}",
            kind=ErrorKind.UPSTREAM_UNAVAILABLE,
            cause=cause,
            user_action=f"Check {service} connectivity and credentials",
        )
        self.service = service


class InvalidOperationError(AdmissionControllerError):
    """The requested change is forbidden by policy."""

    def __init__(self, message: str, user_action: str | None = None):
        super().__init__(
            message=message, kind=ErrorKind.INVALID_OPERATION, user_action=user_action
        )


class ConfigurationError(AdmissionControllerError):
    """Controller configuration is missing or inconsistent."""

    def __init__(self, message: str, user_action: str | None = None):
        super().__init__(
            message=message,
            kind=ErrorKind.CONFIGURATION,
            user_action=user_action or "Review the controller environment variables",
        )


_DENIAL_KINDS = {
    "release-not-found": ErrorKind.RELEASE_NOT_FOUND,
    "downgrade": ErrorKind.DOWNGRADE,
    "alpha-boundary": ErrorKind.ALPHA_BOUNDARY,
    "release-skipped": ErrorKind.RELEASE_SKIPPED,
}


class UpgradeDeniedError(AdmissionControllerError):
    """A release transition was rejected by the upgrade validator."""

    def __init__(self, decision: "UpgradeDecision"):
        super().__init__(
            message=decision.message,
            kind=_DENIAL_KINDS[decision.reason.value],
        )
        self.decision = decision


def _has_kind(error: BaseException, kind: ErrorKind) -> bool:
    return isinstance(error, AdmissionControllerError) and error.kind == kind


def is_invalid_request(error: BaseException) -> bool:
    return _has_kind(error, ErrorKind.INVALID_REQUEST)


def is_not_found(error: BaseException) -> bool:
    return _has_kind(error, ErrorKind.NOT_FOUND)


def is_upstream_invalid_response(error: BaseException) -> bool:
    return _has_kind(error, ErrorKind.UPSTREAM_INVALID_RESPONSE)


def is_upstream_unavailable(error: BaseException) -> bool:
    return _has_kind(error, ErrorKind.UPSTREAM_UNAVAILABLE)


def is_policy_denial(error: BaseException) -> bool:
    return isinstance(error, AdmissionControllerError) and error.is_policy_denial
