"""
Unit tests for the admission controller error hierarchy.
"""

import kopf
import pytest

from azure_admission.errors import (
    AdmissionControllerError,
    ConfigurationError,
    ErrorKind,
    InvalidOperationError,
    InvalidRequestError,
    NotFoundError,
    PatchApplicationError,
    SerializationError,
    SkuNotFoundError,
    UpstreamInvalidResponseError,
    UpstreamUnavailableError,
    is_invalid_request,
    is_not_found,
    is_policy_denial,
    is_upstream_invalid_response,
    is_upstream_unavailable,
)


class TestErrorKinds:
    """Each error class carries its kind."""

    @pytest.mark.parametrize(
        "error,kind",
        [
            (InvalidRequestError("empty"), ErrorKind.INVALID_REQUEST),
            (SerializationError("bad"), ErrorKind.INVALID_REQUEST),
            (NotFoundError("gone"), ErrorKind.NOT_FOUND),
            (SkuNotFoundError("westeurope", "Standard_X"), ErrorKind.NOT_FOUND),
            (UpstreamInvalidResponseError("svc", "junk"), ErrorKind.UPSTREAM_INVALID_RESPONSE),
            (UpstreamUnavailableError("svc", "down"), ErrorKind.UPSTREAM_UNAVAILABLE),
            (InvalidOperationError("nope"), ErrorKind.INVALID_OPERATION),
            (ConfigurationError("unset"), ErrorKind.CONFIGURATION),
            (PatchApplicationError("conflict"), ErrorKind.INTERNAL),
        ],
    )
    def test_kind(self, error, kind):
        assert isinstance(error, AdmissionControllerError)
        assert error.kind == kind

    def test_predicates(self):
        assert is_invalid_request(InvalidRequestError("x"))
        assert is_not_found(SkuNotFoundError("r", "t"))
        assert is_upstream_invalid_response(UpstreamInvalidResponseError("s", "m"))
        assert is_upstream_unavailable(UpstreamUnavailableError("s", "m"))
        assert not is_not_found(ValueError("x"))
        assert not is_policy_denial(RuntimeError("x"))

    def test_field_is_named_in_message(self):
        error = InvalidRequestError("must not be empty", field="region")
        assert str(error) == "Invalid value for field 'region': must not be empty"

    def test_cause_is_kept(self):
        cause = ConnectionError("reset")
        error = UpstreamUnavailableError("Kubernetes API", "list failed", cause=cause)
        assert error.cause is cause
        assert error.service == "Kubernetes API"

    def test_user_action_appended(self):
        error = NotFoundError("Release v99.0.0 was not found", user_action="Pick another")
        assert str(error) == "Release v99.0.0 was not found\nAction required: Pick another"


class TestAdmissionTranslation:
    """Policy denials and system faults answer reviews differently."""

    @pytest.mark.parametrize(
        "error",
        [
            NotFoundError("gone"),
            InvalidOperationError("nope"),
            InvalidRequestError("empty"),
        ],
    )
    def test_denials_are_bad_requests(self, error):
        admission_error = error.as_admission_error()

        assert isinstance(admission_error, kopf.AdmissionError)
        assert admission_error.code == 400
        assert str(admission_error) == str(error)

    @pytest.mark.parametrize(
        "error",
        [
            UpstreamUnavailableError("svc", "down"),
            UpstreamInvalidResponseError("svc", "junk"),
            ConfigurationError("unset"),
            PatchApplicationError("conflict"),
        ],
    )
    def test_faults_are_internal_errors(self, error):
        admission_error = error.as_admission_error()

        assert admission_error.code == 500
        assert str(admission_error).startswith("Internal error: ")

    def test_policy_denial_flag(self):
        assert InvalidOperationError("nope").is_policy_denial
        assert NotFoundError("gone").is_policy_denial
        assert not InvalidRequestError("empty").is_policy_denial
        assert not UpstreamUnavailableError("svc", "down").is_policy_denial
