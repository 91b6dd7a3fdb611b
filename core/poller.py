"""
Job polling and completion.

A single facade call both checks a job and downloads its output. While the
job runs, that call raises JobNotReadyError; the poller then waits according
to the tier's PollPolicy and tries again, until the job is ready or the
policy's maximum wait is used up.

State machine:
    SUBMITTED -> NOT_READY -> (wait, poll) -> ... -> READY | FAILED | TIMED OUT

The budget is counted in scheduled delay, not wall-clock time, so a slow
remote call does not shorten the number of attempts a tier gets.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from models.retrieval import JobHandle, JobOutput
from .exceptions import (
    CompletionFailedError,
    JobNotReadyError,
    RemoteServiceError,
    RetrievalTimeoutError,
)
from .tiers import PollPolicy


logger = logging.getLogger("vault_retrieval.core.poller")

Sleep = Callable[[float], Awaitable[None]]


async def complete_retrieval(
    client,
    handle: JobHandle,
    policy: Optional[PollPolicy] = None,
    sleep: Sleep = asyncio.sleep,
    job_logger: Optional[logging.Logger] = None
) -> JobOutput:
    """
    Poll a retrieval job until its output can be downloaded.

    Args:
        client: GlacierClient facade (or anything with the same fetch_job_output)
        handle: JobHandle from initiate_retrieval()
        policy: Wait policy (defaults to the handle's tier policy)
        sleep: Awaitable sleep, replaceable in tests
        job_logger: Logger for this retrieval (module logger if not provided)

    Returns:
        JobOutput with its body unread

    Raises:
        RetrievalTimeoutError: If the job is not ready within the policy
        CompletionFailedError: If the service definitively rejects the fetch
    """
    log = job_logger or logger
    policy = policy or handle.tier.poll_policy
    delays = policy.delays()

    attempts = 0
    waited = 0.0

    log.info(
        f"Waiting for job {handle.job_id} "
        f"(tier={handle.tier.display_name}, max_wait={policy.max_wait:.0f}s)"
    )

    while True:
        attempts += 1
        try:
            output = await client.fetch_job_output(handle.vault_id, handle.job_id)
        except JobNotReadyError as e:
            delay = next(delays, None)
            if delay is None:
                log.error(
                    f"Job {handle.job_id} timed out after {attempts} attempts ({waited:.0f}s waited)"
                )
                raise RetrievalTimeoutError(
                    handle.job_id, handle.vault_id, waited, attempts, cause=e
                ) from e

            log.debug(f"Job {handle.job_id} not ready ({e.status_code}), retrying in {delay:.0f}s")
            await sleep(delay)
            waited += delay
            continue
        except RemoteServiceError as e:
            log.error(f"Job {handle.job_id} failed: {e}")
            raise CompletionFailedError(handle.job_id, handle.vault_id, cause=e) from e

        log.info(f"Job {handle.job_id} completed after {attempts} attempts ({waited:.0f}s waited)")
        return output
