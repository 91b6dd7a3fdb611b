"""
End-to-end archive retrieval.

RetrievalOrchestrator sequences initiation and completion for one archive
and is the entry point callers use:

    orchestrator = RetrievalOrchestrator(manager.client)
    output = await orchestrator.retrieve(archive_id, vault_id, "standard")
    data = output.read()

Errors from either step propagate unchanged; callers only ever see the four
RetrievalError kinds. Each call owns its own JobHandle, so any number of
retrieve() calls may run concurrently on one orchestrator.

Cancelling a retrieve() task stops local polling only; the remote job keeps
running until the service expires it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional, Union

from models.retrieval import JobHandle, JobOutput
from .exceptions import InvalidTierError
from .initiator import initiate_retrieval
from .poller import Sleep, complete_retrieval
from .tiers import PollPolicy, Tier


logger = logging.getLogger("vault_retrieval.core.orchestrator")


def resolve_tier(tier: Union[Tier, str]) -> Tier:
    """
    Accept a Tier or tier text.

    Raises:
        InvalidTierError: If the text is not a tier name
    """
    if isinstance(tier, Tier):
        return tier
    parsed = Tier.parse(tier)
    if parsed is None:
        raise InvalidTierError(tier)
    return parsed


class RetrievalOrchestrator:
    """
    Composes job initiation and polling into one retrieval operation.

    Attributes:
        client: GlacierClient facade shared by all retrievals
    """

    def __init__(
        self,
        client,
        policies: Optional[Dict[Tier, PollPolicy]] = None,
        wait_scale: float = 1.0,
        sleep: Sleep = asyncio.sleep
    ):
        """
        Initialize the orchestrator.

        Args:
            client: GlacierClient facade
            policies: Per-tier overrides of the default wait policies
            wait_scale: Multiplier applied to every policy
            sleep: Awaitable sleep used between polls
        """
        self.client = client
        self._policies = dict(policies or {})
        self._wait_scale = wait_scale
        self._sleep = sleep

    def policy_for(self, tier: Tier) -> PollPolicy:
        """Wait policy used for jobs of the given tier."""
        policy = self._policies.get(tier, tier.poll_policy)
        if self._wait_scale != 1.0:
            policy = policy.scaled(self._wait_scale)
        return policy

    async def retrieve(
        self,
        archive_id: str,
        vault_id: str,
        tier: Union[Tier, str],
        on_submitted: Optional[Callable[[JobHandle], None]] = None
    ) -> JobOutput:
        """
        Retrieve one archive.

        Args:
            archive_id: Archive to retrieve
            vault_id: Vault holding the archive
            tier: Tier, or tier text to parse
            on_submitted: Called with the JobHandle once the job exists.
                Exceptions it raises are logged and do not stop the retrieval.

        Returns:
            JobOutput with its body unread

        Raises:
            InvalidTierError: Tier text did not parse (no remote call made)
            InitiationFailedError: Job could not be submitted
            RetrievalTimeoutError: Job not ready within the tier's wait policy
            CompletionFailedError: Output fetch definitively rejected
        """
        resolved = resolve_tier(tier)

        handle = await initiate_retrieval(self.client, archive_id, vault_id, resolved)
        if on_submitted is not None:
            try:
                on_submitted(handle)
            except Exception as e:
                # The remote job already exists; polling continues regardless
                logger.error(f"on_submitted callback failed for job {handle.job_id}: {e}", exc_info=True)

        job_logger = logging.getLogger(f"vault_retrieval.job.{handle.job_id[:8]}")
        return await complete_retrieval(
            self.client,
            handle,
            policy=self.policy_for(resolved),
            sleep=self._sleep,
            job_logger=job_logger,
        )


async def retrieve(
    client,
    archive_id: str,
    vault_id: str,
    tier: Union[Tier, str],
    sleep: Sleep = asyncio.sleep
) -> JobOutput:
    """Retrieve one archive with the default wait policies."""
    return await RetrievalOrchestrator(client, sleep=sleep).retrieve(archive_id, vault_id, tier)
