"""
Unit tests for the exception hierarchy.
"""

import pytest

from core.exceptions import (
    ClientUnavailableError,
    CompletionFailedError,
    InitiationFailedError,
    InvalidTierError,
    JobNotReadyError,
    RemoteServiceError,
    RetrievalError,
    RetrievalErrorKind,
    RetrievalTimeoutError,
    VaultRetrievalError,
)


def test_str_includes_details():
    error = VaultRetrievalError("Something broke", {"key": "value"})
    assert str(error) == "Something broke | Details: {'key': 'value'}"
    assert str(VaultRetrievalError("plain")) == "plain"


def test_client_unavailable_reason():
    error = ClientUnavailableError(reason="no region")
    assert error.details["reason"] == "no region"
    assert "resolution" in error.details


def test_job_not_ready_is_remote_error():
    error = JobNotReadyError("vault-a", "job-1")
    assert isinstance(error, RemoteServiceError)
    assert error.status_code == "InProgress"
    assert error.details["job_id"] == "job-1"


def test_remote_error_records_code():
    error = RemoteServiceError("describe_job", "denied", error_code="AccessDeniedException")
    assert error.details == {"operation": "describe_job", "error_code": "AccessDeniedException"}


@pytest.mark.parametrize("error,kind,retryable", [
    (InvalidTierError("fast"), RetrievalErrorKind.INVALID_TIER, False),
    (InitiationFailedError("a", "v"), RetrievalErrorKind.INITIATION_FAILED, True),
    (CompletionFailedError("j", "v"), RetrievalErrorKind.COMPLETION_FAILED, False),
    (RetrievalTimeoutError("j", "v", 7.0, 4), RetrievalErrorKind.TIMEOUT, True),
])
def test_retrieval_error_kinds(error, kind, retryable):
    assert isinstance(error, RetrievalError)
    assert error.kind is kind
    assert error.retryable is retryable


def test_cause_is_kept_in_details():
    cause = RemoteServiceError("initiate_job", "Vault not found")
    error = InitiationFailedError("arch-1", "vault-a", cause=cause)
    assert error.cause is cause
    assert error.details["cause"].startswith("RemoteServiceError: Vault not found")


def test_timeout_message():
    error = RetrievalTimeoutError("job-1", "vault-a", 7.0, 4)
    assert "4 attempts" in error.message
    assert "7s waited" in error.message
