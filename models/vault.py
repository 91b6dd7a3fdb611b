"""
Vault metadata and upload receipt models.

Thin wrappers over list_vaults / upload_archive responses. Missing fields
fall back to placeholder text rather than failing, since vault listings are
presentation-only.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


UNAVAILABLE = "Failed to fetch"
NOT_APPLICABLE = "N/A"


def format_timestamp(value: Optional[str], fallback: str = UNAVAILABLE) -> str:
    """
    Make an ISO-8601 service timestamp readable.

    "2024-01-02T03:04:05.000Z" -> "2024-01-02 03:04:05.000"
    """
    if not value:
        return fallback
    return value.replace("T", " ").replace("Z", "")


@dataclass(frozen=True)
class VaultSummary:
    """One entry of a vault listing."""

    name: str
    arn: str
    created: str
    last_inventory: str
    number_of_archives: int
    size_in_bytes: int

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "VaultSummary":
        """Create from a VaultList item."""
        return cls(
            name=data.get("VaultName") or UNAVAILABLE,
            arn=data.get("VaultARN") or NOT_APPLICABLE,
            created=format_timestamp(data.get("CreationDate")),
            last_inventory=format_timestamp(data.get("LastInventoryDate"), NOT_APPLICABLE),
            number_of_archives=int(data.get("NumberOfArchives", 0) or 0),
            size_in_bytes=int(data.get("SizeInBytes", 0) or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ArchiveReceipt:
    """Result of a single-request archive upload."""

    archive_id: str
    checksum: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ArchiveReceipt":
        return cls(
            archive_id=data["archiveId"],
            checksum=data.get("checksum"),
            location=data.get("location"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
