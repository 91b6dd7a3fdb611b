"""
Shared fixtures for the vault retrieval tests.

StubGlacierClient stands in for the GlacierClient facade: it records every
call and answers "not ready" a scripted number of times per job id.
"""

import asyncio
import io
import time
from unittest.mock import MagicMock

import pytest

from core.exceptions import JobNotReadyError
from core.tiers import PollPolicy
from models.retrieval import JobOutput
from models.vault import ArchiveReceipt, VaultSummary


NEVER_READY = -1


class StubGlacierClient:
    """
    In-memory facade with call counting.

    Job ids are derived from the archive id ("job-<archive_id>") so tests
    can script per-job behaviour before submission.
    """

    def __init__(
        self,
        not_ready=None,
        submit_error=None,
        fetch_error=None,
        bodies=None
    ):
        self.not_ready = dict(not_ready or {})
        self.submit_error = submit_error
        self.fetch_error = fetch_error
        self.bodies = dict(bodies or {})
        self.submit_calls = []
        self.fetch_calls = []
        self.vaults = []
        self.uploads = []

    @property
    def call_count(self) -> int:
        return len(self.submit_calls) + len(self.fetch_calls)

    async def submit_job(self, vault_id, archive_id, tier_name, description):
        self.submit_calls.append((vault_id, archive_id, tier_name, description))
        await asyncio.sleep(0)
        if self.submit_error is not None:
            raise self.submit_error
        return f"job-{archive_id}"

    async def fetch_job_output(self, vault_id, job_id):
        self.fetch_calls.append((vault_id, job_id))
        await asyncio.sleep(0)
        if self.fetch_error is not None:
            raise self.fetch_error

        remaining = self.not_ready.get(job_id, 0)
        if remaining != 0:
            if remaining > 0:
                self.not_ready[job_id] = remaining - 1
            raise JobNotReadyError(vault_id, job_id)

        body = self.bodies.get(job_id, f"content of {job_id}".encode("utf-8"))
        return JobOutput(
            body=io.BytesIO(body),
            checksum=f"sum-{job_id}",
            content_range=f"bytes 0-{len(body) - 1}/{len(body)}",
            content_type="application/octet-stream",
        )

    async def list_vaults(self):
        return [VaultSummary.from_api(v) for v in self.vaults]

    async def upload_archive(self, vault_id, body, description=""):
        self.uploads.append((vault_id, body, description))
        return ArchiveReceipt(archive_id=f"archive-{len(self.uploads)}", checksum="abc", location="/loc")


async def no_wait(delay):
    """Sleep replacement that only yields to the event loop."""
    await asyncio.sleep(0)


def wait_until_final(service, retrieval_id, timeout=5.0):
    """Block until a background retrieval reaches a final status."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = service.get_result(retrieval_id)
        if result is not None and result.is_final:
            return result
        time.sleep(0.01)
    raise AssertionError(f"Retrieval {retrieval_id} did not finish in {timeout}s")


# Fixtures

@pytest.fixture
def stub_client():
    """Stub facade where every job is immediately ready."""
    return StubGlacierClient()


@pytest.fixture
def make_stub():
    """Factory for scripted stub facades."""
    return StubGlacierClient


@pytest.fixture
def fast_policy():
    """Small policy: delays 1, 2, 4 (four attempts in total)."""
    return PollPolicy(initial_delay=1.0, backoff=2.0, max_interval=4.0, max_wait=10.0)


@pytest.fixture
def recording_sleep():
    """Sleep replacement that records requested delays."""
    delays = []

    async def sleep(delay):
        delays.append(delay)
        await asyncio.sleep(0)

    sleep.delays = delays
    return sleep


@pytest.fixture
def client_manager(stub_client):
    """Initialized ClientManager stand-in wrapping the stub facade."""
    manager = MagicMock()
    manager.is_initialized = True
    manager.client = stub_client
    manager.region = "eu-west-2"
    return manager
