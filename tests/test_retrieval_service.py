"""
Unit tests for the background retrieval service.

Retrievals run on the service's real event loop thread against the stub
facade; waits are replaced with yields.
"""

import asyncio
import time
from unittest.mock import MagicMock

import pytest

from core.exceptions import InvalidTierError, RemoteServiceError
from core.orchestrator import RetrievalOrchestrator
from core.tiers import PollPolicy, Tier
from models.retrieval import JobOutput
from models.retrieval_result import RetrievalResult, RetrievalStatus
from services.retrieval_service import RetrievalResultStore, RetrievalService

from conftest import NEVER_READY, StubGlacierClient, no_wait, wait_until_final


# Polls every 50 ms for up to a minute; long enough to cancel mid-wait
SLOW_POLICY = PollPolicy(initial_delay=0.05, backoff=1.0, max_interval=0.05, max_wait=60.0)


def _manager(client):
    manager = MagicMock()
    manager.is_initialized = True
    manager.client = client
    return manager


def _wait_for_status(service, retrieval_id, status, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = service.get_result(retrieval_id)
        if result is not None and result.status == status:
            return result
        time.sleep(0.01)
    raise AssertionError(f"Retrieval {retrieval_id} never reached {status.value}")


def _wait_until_done(service, retrieval_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while service.is_pending(retrieval_id) and time.monotonic() < deadline:
        time.sleep(0.01)


@pytest.fixture
def build_service():
    """Factory for started services; every service is shut down afterwards."""
    services = []

    def build(client=None, policies=None, sleep=no_wait, result_ttl=3600.0):
        client = client or StubGlacierClient()
        orchestrator = RetrievalOrchestrator(client, policies=policies, sleep=sleep)
        service = RetrievalService(_manager(client), orchestrator=orchestrator, result_ttl=result_ttl)
        service.start()
        services.append(service)
        return service

    yield build

    for service in services:
        service.shutdown()


class TestRetrievalResultStore:

    def test_update_unknown_returns_none(self):
        store = RetrievalResultStore()
        assert store.update("nope", lambda r: r) is None

    def test_content_is_consumed_once(self):
        store = RetrievalResultStore()
        store.put_content("r-1", b"data", "text/plain")

        assert store.take_content("r-1") == (b"data", "text/plain")
        assert store.take_content("r-1") is None

    def test_clear(self):
        store = RetrievalResultStore()
        store.put_result(RetrievalResult.create_pending("r-1", "a", "v", "Bulk"))
        store.put_content("r-1", b"data", None)

        assert store.clear() == 1
        assert store.get_result("r-1") is None
        assert store.take_content("r-1") is None

    def test_final_results_expire_with_content(self):
        now = [0.0]
        store = RetrievalResultStore(ttl_seconds=10.0, clock=lambda: now[0])
        for i in range(4):
            pending = RetrievalResult.create_pending(f"r-{i}", "a", "v", "Bulk")
            store.put_result(pending)
            store.put_content(f"r-{i}", b"data", None)
            store.update(f"r-{i}", lambda r: r.with_internal_error(RuntimeError("x")))
        store.put_result(RetrievalResult.create_pending("r-running", "a", "v", "Bulk"))
        store.take_content("r-0")

        assert len(store) == 5
        assert store.content_count == 3

        now[0] = 9.0
        assert store.evict_expired() == 0

        now[0] = 10.0
        assert store.evict_expired() == 4
        assert len(store) == 1
        assert store.content_count == 0
        assert store.get_result("r-running") is not None

    def test_expiry_starts_when_result_becomes_final(self):
        now = [0.0]
        store = RetrievalResultStore(ttl_seconds=10.0, clock=lambda: now[0])
        store.put_result(RetrievalResult.create_pending("r-1", "a", "v", "Bulk"))

        now[0] = 50.0
        store.update("r-1", lambda r: r.with_cancelled())
        now[0] = 55.0
        assert store.get_result("r-1") is not None

        now[0] = 60.0
        assert store.get_result("r-1") is None

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            RetrievalResultStore(ttl_seconds=0)


class TestLifecycle:

    def test_requires_initialized_manager(self):
        manager = MagicMock()
        manager.is_initialized = False
        with pytest.raises(ValueError):
            RetrievalService(manager)

    def test_builds_orchestrator_from_manager(self, client_manager, stub_client):
        service = RetrievalService(client_manager, wait_scale=0.5)
        assert service.client is stub_client

    def test_submit_before_start(self, client_manager):
        service = RetrievalService(client_manager)
        with pytest.raises(RuntimeError):
            service.submit("arch-1", "vault-a", "bulk")

    def test_double_start_rejected(self, build_service):
        service = build_service()
        with pytest.raises(RuntimeError):
            service.start()

    def test_shutdown_stops_loop(self, client_manager):
        service = RetrievalService(client_manager)
        service.start()
        assert service.is_running is True

        service.shutdown()

        assert service.is_running is False


class TestSubmit:

    def test_completed_retrieval(self, build_service):
        client = StubGlacierClient(not_ready={"job-arch-1": 2})
        service = build_service(client)

        retrieval_id = service.submit("arch-1", "vault-a", " standard ")
        result = wait_until_final(service, retrieval_id)

        assert result.status is RetrievalStatus.COMPLETED
        assert result.tier == "Standard"
        assert result.job_id == "job-arch-1"
        assert result.size_in_bytes == len(b"content of job-arch-1")
        assert result.checksum == "sum-job-arch-1"
        assert service.take_content(retrieval_id) == (b"content of job-arch-1", "application/octet-stream")
        assert service.take_content(retrieval_id) is None

    def test_invalid_tier_raised_before_scheduling(self, build_service):
        client = StubGlacierClient()
        service = build_service(client)

        with pytest.raises(InvalidTierError):
            service.submit("arch-1", "vault-a", "fast")

        assert client.call_count == 0

    def test_initiation_failure_recorded(self, build_service):
        client = StubGlacierClient(submit_error=RemoteServiceError("initiate_job", "Vault not found"))
        service = build_service(client)

        result = wait_until_final(service, service.submit("arch-1", "vault-a", Tier.BULK))

        assert result.status is RetrievalStatus.FAILED
        assert result.error_kind == "initiation_failed"
        assert result.retryable is True
        assert result.job_id is None

    def test_timeout_recorded(self, build_service, fast_policy):
        client = StubGlacierClient(not_ready={"job-arch-1": NEVER_READY})
        service = build_service(client, policies={Tier.EXPEDITED: fast_policy})

        result = wait_until_final(service, service.submit("arch-1", "vault-a", "expedited"))

        assert result.status is RetrievalStatus.FAILED
        assert result.error_kind == "timeout"
        assert result.job_id == "job-arch-1"
        assert len(client.fetch_calls) == fast_policy.max_attempts

    def test_unreadable_body_is_completion_failure(self, build_service):
        body = MagicMock()
        body.read.side_effect = OSError("connection reset")

        class BrokenBodyClient(StubGlacierClient):
            async def fetch_job_output(self, vault_id, job_id):
                self.fetch_calls.append((vault_id, job_id))
                return JobOutput(body=body)

        service = build_service(BrokenBodyClient())

        result = wait_until_final(service, service.submit("arch-1", "vault-a", "bulk"))

        assert result.status is RetrievalStatus.FAILED
        assert result.error_kind == "completion_failed"
        assert service.take_content(result.retrieval_id) is None

    def test_unexpected_error_recorded_as_internal(self, build_service):
        client = StubGlacierClient(fetch_error=KeyError("body"))
        service = build_service(client)

        result = wait_until_final(service, service.submit("arch-1", "vault-a", "bulk"))

        assert result.status is RetrievalStatus.FAILED
        assert result.error_kind == "internal"

    def test_many_concurrent_retrievals(self, build_service):
        archives = [f"arch-{i}" for i in range(8)]
        client = StubGlacierClient(
            not_ready={f"job-{a}": i % 4 for i, a in enumerate(archives)},
            bodies={f"job-{a}": a.encode() for a in archives},
        )
        service = build_service(client)

        ids = [service.submit(a, "vault-a", "expedited") for a in archives]
        results = [wait_until_final(service, i) for i in ids]

        assert all(r.status is RetrievalStatus.COMPLETED for r in results)
        assert [service.take_content(i)[0] for i in ids] == [a.encode() for a in archives]


class TestCancel:

    def test_cancel_while_waiting(self, build_service):
        client = StubGlacierClient(not_ready={"job-arch-1": NEVER_READY})
        service = build_service(client, policies={Tier.BULK: SLOW_POLICY}, sleep=asyncio.sleep)

        retrieval_id = service.submit("arch-1", "vault-a", "bulk")
        _wait_for_status(service, retrieval_id, RetrievalStatus.SUBMITTED)
        assert service.is_pending(retrieval_id) is True

        assert service.cancel(retrieval_id) is True

        result = service.get_result(retrieval_id)
        assert result.status is RetrievalStatus.CANCELLED
        assert result.job_id == "job-arch-1"

    def test_cancel_unknown(self, build_service):
        assert build_service().cancel("nope") is False

    def test_cancel_finished_keeps_result(self, build_service):
        service = build_service()
        retrieval_id = service.submit("arch-1", "vault-a", "bulk")
        wait_until_final(service, retrieval_id)
        _wait_until_done(service, retrieval_id)

        assert service.cancel(retrieval_id) is False
        assert service.get_result(retrieval_id).status is RetrievalStatus.COMPLETED

    def test_shutdown_abandons_running(self, build_service):
        client = StubGlacierClient(not_ready={"job-arch-1": NEVER_READY})
        service = build_service(client, policies={Tier.BULK: SLOW_POLICY}, sleep=asyncio.sleep)
        retrieval_id = service.submit("arch-1", "vault-a", "bulk")
        _wait_for_status(service, retrieval_id, RetrievalStatus.SUBMITTED)

        service.shutdown()

        assert service.is_running is False
        assert service.get_result(retrieval_id).status is RetrievalStatus.CANCELLED


class TestCall:

    def test_call_runs_on_loop(self, build_service):
        client = StubGlacierClient()
        client.vaults = [{"VaultName": "photos"}]
        service = build_service(client)

        vaults = service.call(client.list_vaults())

        assert [v.name for v in vaults] == ["photos"]

    def test_call_when_stopped(self, client_manager, stub_client):
        service = RetrievalService(client_manager)
        with pytest.raises(RuntimeError):
            service.call(stub_client.list_vaults())


class TestEviction:

    def test_finished_retrievals_are_released(self, build_service):
        archives = [f"arch-{i}" for i in range(50)]
        client = StubGlacierClient(not_ready={f"job-{a}": i % 3 for i, a in enumerate(archives)})
        service = build_service(client, result_ttl=0.2)
        store = service.result_store

        ids = [service.submit(a, "vault-a", "bulk") for a in archives]

        deadline = time.monotonic() + 5.0
        while (len(store) or store.content_count) and time.monotonic() < deadline:
            time.sleep(0.05)

        assert len(store) == 0
        assert store.content_count == 0
        assert service.get_result(ids[-1]) is None
