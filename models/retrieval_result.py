"""
Retrieval result data models.

These models track a retrieval started through the web surface. The
retrieval coroutine (running on the service's event loop) writes them and
request handlers read them.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional

from core.exceptions import RetrievalError
from models.retrieval import JobHandle, JobOutput


class RetrievalStatus(Enum):
    """
    Status of a retrieval.

    Lifecycle:
        PENDING -> SUBMITTED -> (COMPLETED | FAILED)
        PENDING -> FAILED (initiation failure)
        PENDING | SUBMITTED -> CANCELLED
    """

    PENDING = "pending"
    """Retrieval accepted, job not yet submitted."""

    SUBMITTED = "submitted"
    """Job submitted, waiting for the service to finish it."""

    COMPLETED = "completed"
    """Job output downloaded."""

    FAILED = "failed"
    """Retrieval failed; see error_kind."""

    CANCELLED = "cancelled"
    """Caller stopped waiting; the remote job may still finish."""


@dataclass(frozen=True)
class RetrievalResult:
    """
    Snapshot of one retrieval.

    Each state change produces a new instance; the result store swaps the
    stored instance under its lock.
    """

    retrieval_id: str
    """Local identifier handed back to the HTTP caller."""

    archive_id: str
    vault_id: str
    tier: str

    status: RetrievalStatus
    accepted_at: datetime

    job_id: Optional[str] = None
    """Service job id, once submitted."""

    finished_at: Optional[datetime] = None

    size_in_bytes: Optional[int] = None
    checksum: Optional[str] = None
    content_range: Optional[str] = None
    content_type: Optional[str] = None

    error_kind: Optional[str] = None
    error_message: str = ""
    retryable: bool = False

    @classmethod
    def create_pending(
        cls,
        retrieval_id: str,
        archive_id: str,
        vault_id: str,
        tier: str
    ) -> "RetrievalResult":
        """Create a result for a retrieval that has just been accepted."""
        return cls(
            retrieval_id=retrieval_id,
            archive_id=archive_id,
            vault_id=vault_id,
            tier=tier,
            status=RetrievalStatus.PENDING,
            accepted_at=datetime.now(timezone.utc),
        )

    def with_submitted(self, handle: JobHandle) -> "RetrievalResult":
        """Record the job the service created for this retrieval."""
        return replace(self, status=RetrievalStatus.SUBMITTED, job_id=handle.job_id)

    def with_completed(self, output: JobOutput, size_in_bytes: int) -> "RetrievalResult":
        """Record a downloaded job output."""
        return replace(
            self,
            status=RetrievalStatus.COMPLETED,
            finished_at=datetime.now(timezone.utc),
            size_in_bytes=size_in_bytes,
            checksum=output.checksum,
            content_range=output.content_range,
            content_type=output.content_type,
        )

    def with_failed(self, error: RetrievalError) -> "RetrievalResult":
        """Record a typed retrieval failure."""
        return replace(
            self,
            status=RetrievalStatus.FAILED,
            finished_at=datetime.now(timezone.utc),
            error_kind=error.kind.value,
            error_message=error.message,
            retryable=error.retryable,
        )

    def with_internal_error(self, error: BaseException) -> "RetrievalResult":
        """Record a failure outside the retrieval error taxonomy."""
        return replace(
            self,
            status=RetrievalStatus.FAILED,
            finished_at=datetime.now(timezone.utc),
            error_kind="internal",
            error_message=str(error) or type(error).__name__,
            retryable=False,
        )

    def with_cancelled(self) -> "RetrievalResult":
        if self.is_final:
            return self
        return replace(
            self,
            status=RetrievalStatus.CANCELLED,
            finished_at=datetime.now(timezone.utc),
        )

    @property
    def is_final(self) -> bool:
        return self.status in (
            RetrievalStatus.COMPLETED,
            RetrievalStatus.FAILED,
            RetrievalStatus.CANCELLED,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        return {
            "retrieval_id": self.retrieval_id,
            "archive_id": self.archive_id,
            "vault_id": self.vault_id,
            "tier": self.tier,
            "status": self.status.value,
            "accepted_at": self.accepted_at.isoformat(),
            "job_id": self.job_id,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "size_in_bytes": self.size_in_bytes,
            "checksum": self.checksum,
            "content_range": self.content_range,
            "content_type": self.content_type,
            "error_kind": self.error_kind,
            "error_message": self.error_message,
            "retryable": self.retryable,
        }
