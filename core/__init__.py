"""
Core module for the vault retrieval service.

Contains the retrieval core and its infrastructure:
- exceptions: Custom exception hierarchy and retrieval error kinds
- tiers: Tier catalog and per-tier wait policies
- glacier_client: Async facade over the boto3 Glacier client
- client_manager: Glacier client lifecycle management
- initiator / poller / orchestrator: The retrieval job lifecycle

Only the dependency-free pieces are re-exported here; import the client,
lifecycle and orchestration modules directly.
"""

from .exceptions import (
    VaultRetrievalError,
    ClientUnavailableError,
    RemoteServiceError,
    JobNotReadyError,
    RetrievalErrorKind,
    RetrievalError,
    InvalidTierError,
    InitiationFailedError,
    CompletionFailedError,
    RetrievalTimeoutError,
)
from .tiers import Tier, PollPolicy

__all__ = [
    "VaultRetrievalError",
    "ClientUnavailableError",
    "RemoteServiceError",
    "JobNotReadyError",
    "RetrievalErrorKind",
    "RetrievalError",
    "InvalidTierError",
    "InitiationFailedError",
    "CompletionFailedError",
    "RetrievalTimeoutError",
    "Tier",
    "PollPolicy",
]
