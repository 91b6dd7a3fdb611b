"""
Data models for the vault retrieval service.

This module contains dataclasses for:
- RetrievalRequest / JobHandle / JobOutput: values passed along one retrieval
- RetrievalResult: status of a retrieval started through the web surface
- VaultSummary / ArchiveReceipt: vault listing and upload pass-through data

RetrievalRequest, JobHandle and RetrievalResult are frozen so they can be
shared between the event loop thread and request handlers.
"""

from .retrieval import RetrievalRequest, JobHandle, JobOutput, describe_job
from .retrieval_result import RetrievalResult, RetrievalStatus
from .vault import VaultSummary, ArchiveReceipt

__all__ = [
    # Retrieval models
    "RetrievalRequest",
    "JobHandle",
    "JobOutput",
    "describe_job",
    # Result models
    "RetrievalResult",
    "RetrievalStatus",
    # Vault models
    "VaultSummary",
    "ArchiveReceipt",
]
