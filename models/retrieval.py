"""
Retrieval request, job handle and job output models.

These are the values passed between the initiator, the poller and the
orchestrator during a single retrieval:

    RetrievalRequest -> (submit) -> JobHandle -> (poll) -> JobOutput

RetrievalRequest and JobHandle are frozen so a retrieval can be handed to
another task without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, Optional

from core.tiers import Tier


def _require(value: str, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} must be a non-empty string")
    return value


@dataclass(frozen=True)
class RetrievalRequest:
    """
    Parameters of one archive-retrieval job.

    Identifiers are opaque; the only check is that they are non-empty.
    """

    archive_id: str
    vault_id: str
    tier: Tier
    description: str

    def __post_init__(self) -> None:
        _require(self.archive_id, "archive_id")
        _require(self.vault_id, "vault_id")
        if not isinstance(self.tier, Tier):
            raise ValueError(f"tier must be a Tier, got {self.tier!r}")

    @classmethod
    def build(cls, archive_id: str, vault_id: str, tier: Tier) -> "RetrievalRequest":
        """Create a request with the standard job description."""
        return cls(
            archive_id=archive_id,
            vault_id=vault_id,
            tier=tier,
            description=describe_job(tier),
        )


def describe_job(tier: Tier) -> str:
    """Job description sent with every retrieval request."""
    return f'Getting an archive in "{tier.display_name}" tier'


@dataclass(frozen=True)
class JobHandle:
    """
    A submitted retrieval job.

    The job id is only meaningful together with `vault_id`; every call made
    after submission uses both.
    """

    job_id: str
    """Job identifier returned by the service."""

    vault_id: str
    """Vault the job was created against."""

    tier: Tier
    """Tier the job was submitted with (drives the wait policy)."""

    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """When initiate_job returned."""

    def __post_init__(self) -> None:
        _require(self.job_id, "job_id")
        _require(self.vault_id, "vault_id")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "vault_id": self.vault_id,
            "tier": self.tier.display_name,
            "submitted_at": self.submitted_at.isoformat(),
        }


@dataclass
class JobOutput:
    """
    Output of a finished retrieval job.

    `body` is the unread byte stream returned by the service. The caller
    owns it and is responsible for reading or closing it.
    """

    body: BinaryIO
    checksum: Optional[str] = None
    content_range: Optional[str] = None
    content_type: Optional[str] = None
    archive_description: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def from_api(cls, response: Dict[str, Any]) -> "JobOutput":
        """Create from a get_job_output response."""
        return cls(
            body=response["body"],
            checksum=response.get("checksum"),
            content_range=response.get("contentRange"),
            content_type=response.get("contentType"),
            archive_description=response.get("archiveDescription"),
            status_code=response.get("status"),
        )

    def read(self) -> bytes:
        """Read the remaining body and close the stream."""
        try:
            return self.body.read()
        finally:
            self.close()

    def close(self) -> None:
        close = getattr(self.body, "close", None)
        if close is not None:
            close()

    def metadata(self) -> Dict[str, Any]:
        """Everything except the body, for logging and JSON responses."""
        return {
            "checksum": self.checksum,
            "content_range": self.content_range,
            "content_type": self.content_type,
            "archive_description": self.archive_description,
            "status_code": self.status_code,
        }
