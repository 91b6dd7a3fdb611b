"""
Custom exceptions for the vault retrieval service.

Exception Hierarchy:
    VaultRetrievalError (base)
    ├── ClientUnavailableError  - Remote client cannot be built (startup failure)
    ├── RemoteServiceError      - Remote call rejected or unreachable (facade)
    │   └── JobNotReadyError    - Job output not yet available (facade, retried)
    └── RetrievalError          - Caller-facing retrieval failure
        ├── InvalidTierError        - Tier text did not parse (no remote call made)
        ├── InitiationFailedError   - Job submission failed
        ├── CompletionFailedError   - Job output fetch definitively rejected
        └── RetrievalTimeoutError   - Poll budget for the tier exhausted

Usage:
    Startup errors (ClientUnavailableError) cause the app to fail fast.
    Facade errors never reach callers of the orchestrator directly; they are
    attached as the cause of one of the four RetrievalError kinds.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Dict, Any


class VaultRetrievalError(Exception):
    """
    Base exception for all vault retrieval errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# STARTUP ERRORS - Application will not start if these occur
# =============================================================================

class ClientUnavailableError(VaultRetrievalError):
    """
    The Glacier client could not be constructed.

    This is a FATAL error - nothing can be retrieved without a client.

    Typical causes:
    - No region configured and no AWS_REGION in .env
    - Unknown AWS_PROFILE
    - Malformed GLACIER_ENDPOINT_URL
    """

    def __init__(self, message: str = "Glacier client is not available", reason: str = ""):
        details = {
            "resolution": "Check AWS_REGION, AWS_PROFILE and credentials in .env"
        }
        if reason:
            details["reason"] = reason
        super().__init__(message, details)


# =============================================================================
# FACADE ERRORS - Raised by GlacierClient, translated by the core
# =============================================================================

class RemoteServiceError(VaultRetrievalError):
    """
    A call to the remote storage service failed.

    The facade does not try to classify the failure beyond recording the
    operation and the service error code, if one was returned.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        error_details["operation"] = operation
        if error_code:
            error_details["error_code"] = error_code
        super().__init__(message, error_details)
        self.operation = operation
        self.error_code = error_code


class JobNotReadyError(RemoteServiceError):
    """
    The retrieval job exists but its output is not available yet.

    This is the only facade error the poller retries.
    """

    def __init__(self, vault_id: str, job_id: str, status_code: str = "InProgress"):
        super().__init__(
            operation="fetch_job_output",
            message=f"Job {job_id} in vault {vault_id} is not ready ({status_code})",
            details={"vault_id": vault_id, "job_id": job_id, "status_code": status_code}
        )
        self.vault_id = vault_id
        self.job_id = job_id
        self.status_code = status_code


# =============================================================================
# RETRIEVAL ERRORS - The closed set of failures callers see
# =============================================================================

class RetrievalErrorKind(Enum):
    """Kinds of retrieval failure surfaced to callers."""

    INVALID_TIER = "invalid_tier"
    INITIATION_FAILED = "initiation_failed"
    COMPLETION_FAILED = "completion_failed"
    TIMEOUT = "timeout"


class RetrievalError(VaultRetrievalError):
    """
    Base class for retrieval failures.

    Every subclass sets `kind`. The optional `cause` is the facade error (or
    any other exception) that triggered the failure; it is kept for
    diagnostics only and does not change the kind.
    """

    kind: RetrievalErrorKind

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if cause is not None:
            error_details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, error_details)
        self.cause = cause

    @property
    def retryable(self) -> bool:
        """True if resubmitting the same retrieval may succeed."""
        return self.kind in (RetrievalErrorKind.INITIATION_FAILED, RetrievalErrorKind.TIMEOUT)


class InvalidTierError(RetrievalError):
    """The supplied tier text is not one of Expedited, Standard or Bulk."""

    kind = RetrievalErrorKind.INVALID_TIER

    def __init__(self, tier_text: Any):
        super().__init__(
            f"Unknown retrieval tier: {tier_text!r}",
            details={
                "tier": str(tier_text),
                "resolution": "Use one of: Expedited, Standard, Bulk"
            }
        )
        self.tier_text = tier_text


class InitiationFailedError(RetrievalError):
    """
    The retrieval job could not be submitted.

    Network errors, malformed identifiers, permission denial and missing
    vaults all end up here.
    """

    kind = RetrievalErrorKind.INITIATION_FAILED

    def __init__(
        self,
        archive_id: str,
        vault_id: str,
        cause: Optional[BaseException] = None
    ):
        super().__init__(
            f"Failed to initiate retrieval of archive {archive_id!r} from vault {vault_id!r}",
            cause=cause,
            details={"archive_id": archive_id, "vault_id": vault_id}
        )
        self.archive_id = archive_id
        self.vault_id = vault_id


class CompletionFailedError(RetrievalError):
    """
    The job output fetch was definitively rejected.

    Typical causes: job not found (expired or wrong vault), access denied,
    or the job failed on the service side.
    """

    kind = RetrievalErrorKind.COMPLETION_FAILED

    def __init__(
        self,
        job_id: str,
        vault_id: str,
        cause: Optional[BaseException] = None
    ):
        super().__init__(
            f"Failed to complete retrieval job {job_id!r} in vault {vault_id!r}",
            cause=cause,
            details={"job_id": job_id, "vault_id": vault_id}
        )
        self.job_id = job_id
        self.vault_id = vault_id


class RetrievalTimeoutError(RetrievalError):
    """
    The job did not become ready within the tier's maximum wait.

    Only local polling stops. The remote job keeps running until the service
    expires it, so the caller may resubmit or look the job up later.
    """

    kind = RetrievalErrorKind.TIMEOUT

    def __init__(
        self,
        job_id: str,
        vault_id: str,
        waited_seconds: float,
        attempts: int,
        cause: Optional[BaseException] = None
    ):
        super().__init__(
            f"Retrieval job {job_id!r} not ready after {attempts} attempts "
            f"({waited_seconds:.0f}s waited)",
            cause=cause,
            details={
                "job_id": job_id,
                "vault_id": vault_id,
                "waited_seconds": waited_seconds,
                "attempts": attempts,
                "resolution": "The job may still complete - check again later or resubmit."
            }
        )
        self.job_id = job_id
        self.vault_id = vault_id
        self.waited_seconds = waited_seconds
        self.attempts = attempts
