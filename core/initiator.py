"""
Job initiation.

Builds a RetrievalRequest and submits it through the GlacierClient facade.
Every way submission can fail collapses into InitiationFailedError; the
facade error that caused it is kept as the error's cause.
"""

from __future__ import annotations

import logging
from typing import Optional

from models.retrieval import JobHandle, RetrievalRequest
from .exceptions import InitiationFailedError, RemoteServiceError
from .tiers import Tier


logger = logging.getLogger("vault_retrieval.core.initiator")


async def initiate_retrieval(
    client,
    archive_id: str,
    vault_id: str,
    tier: Tier,
    job_logger: Optional[logging.Logger] = None
) -> JobHandle:
    """
    Submit an archive-retrieval job.

    Args:
        client: GlacierClient facade (or anything with the same submit_job)
        archive_id: Archive to retrieve
        vault_id: Vault holding the archive
        tier: Retrieval tier
        job_logger: Logger for this retrieval (module logger if not provided)

    Returns:
        JobHandle for the submitted job

    Raises:
        InitiationFailedError: If the request is malformed or the service
            rejects or cannot be reached
    """
    log = job_logger or logger

    try:
        request = RetrievalRequest.build(archive_id, vault_id, tier)
    except ValueError as e:
        log.error(f"Invalid retrieval request: {e}")
        raise InitiationFailedError(archive_id, vault_id, cause=e) from e

    log.info(f"Initiating {tier.display_name} retrieval of archive {archive_id} from {vault_id}")

    try:
        job_id = await client.submit_job(
            request.vault_id,
            request.archive_id,
            request.tier.protocol_value,
            request.description,
        )
        # Handle construction validates the returned id
        handle = JobHandle(job_id=job_id, vault_id=request.vault_id, tier=request.tier)
    except (RemoteServiceError, ValueError) as e:
        log.error(f"Retrieval initiation failed: {e}")
        raise InitiationFailedError(archive_id, vault_id, cause=e) from e

    log.info(f"Retrieval job {handle.job_id} submitted")
    return handle
