"""
Background retrieval service.

Retrievals can take hours, so HTTP handlers never wait for them. This
service owns ONE background thread running an asyncio event loop and
schedules each retrieval on it as a task. Many retrievals wait concurrently
without a thread per retrieval.

Thread Safety:
    - Request threads only call submit(), get_result(), take_content(),
      cancel() and is_pending()
    - Retrieval tasks write results through RetrievalResultStore, which
      uses threading.Lock for every operation
    - RetrievalResult is frozen; updates swap the stored instance

Flow:
    1. Request thread calls submit(archive_id, vault_id, tier)
    2. Tier is parsed immediately (InvalidTierError, no remote call)
    3. A PENDING result is stored and a task is scheduled on the loop
    4. The task runs RetrievalOrchestrator.retrieve(); the result becomes
       SUBMITTED once the job exists
    5. On completion the body is read and kept until take_content()
    6. Request threads poll get_result(retrieval_id)
    7. Finished results, and content nobody took, are evicted after
       result_ttl seconds

Usage:
    service = RetrievalService(client_manager)
    service.start()

    retrieval_id = service.submit(archive_id, vault_id, "bulk")
    result = service.get_result(retrieval_id)
    if result.status == RetrievalStatus.COMPLETED:
        data, content_type = service.take_content(retrieval_id)

    service.shutdown()
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
import time
import uuid
from typing import Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from botocore.exceptions import BotoCoreError

from core.client_manager import ClientManager
from core.exceptions import CompletionFailedError, RetrievalError
from core.orchestrator import RetrievalOrchestrator, resolve_tier
from models.retrieval import JobHandle
from models.retrieval_result import RetrievalResult
from logging_config import get_logger, get_job_logger


# Module logger
logger = get_logger(__name__)

T = TypeVar("T")


# Finished retrievals (and any content nobody downloaded) are dropped after this
DEFAULT_RESULT_TTL_SECONDS = 3600.0
MAX_SWEEP_INTERVAL_SECONDS = 60.0


class RetrievalResultStore:
    """
    Thread-safe storage for retrieval results and downloaded content.

    Thread Safety:
        - Uses threading.Lock for all operations
        - Content is consume-once: take_content() removes it
        - Once a result is final it is kept for `ttl_seconds`, then evicted
          together with any content that was never taken

    Eviction runs on every store access and from evict_expired(), which the
    service calls periodically from its event loop.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_RESULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize empty result store.

        Args:
            ttl_seconds: How long a final result stays readable
            clock: Monotonic time source, replaceable in tests
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self._ttl = ttl_seconds
        self._clock = clock
        self._results: Dict[str, RetrievalResult] = {}
        self._content: Dict[str, Tuple[bytes, Optional[str]]] = {}
        self._expires_at: Dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    @property
    def content_count(self) -> int:
        """Number of downloaded archives held in memory."""
        with self._lock:
            return len(self._content)

    def put_result(self, result: RetrievalResult) -> None:
        with self._lock:
            self._evict_expired_locked()
            self._store_locked(result)
            logger.debug(f"Stored result for retrieval {result.retrieval_id[:8]}: {result.status.value}")

    def update(
        self,
        retrieval_id: str,
        change: Callable[[RetrievalResult], RetrievalResult]
    ) -> Optional[RetrievalResult]:
        """
        Replace a stored result with change(result).

        Returns:
            The new result, or None if the retrieval is unknown (or evicted)
        """
        with self._lock:
            self._evict_expired_locked()
            current = self._results.get(retrieval_id)
            if current is None:
                return None
            updated = change(current)
            self._store_locked(updated)
            return updated

    def get_result(self, retrieval_id: str) -> Optional[RetrievalResult]:
        with self._lock:
            self._evict_expired_locked()
            return self._results.get(retrieval_id)

    def put_content(self, retrieval_id: str, data: bytes, content_type: Optional[str]) -> None:
        with self._lock:
            self._content[retrieval_id] = (data, content_type)

    def take_content(self, retrieval_id: str) -> Optional[Tuple[bytes, Optional[str]]]:
        """
        Get and remove downloaded content.

        The result itself stays readable until it expires.

        Returns:
            (bytes, content_type) if available, None otherwise
        """
        with self._lock:
            self._evict_expired_locked()
            content = self._content.pop(retrieval_id, None)
            if content is not None:
                logger.debug(f"Handed out content for retrieval {retrieval_id[:8]}")
            return content

    def evict_expired(self) -> int:
        """
        Drop final results older than the TTL, with their content.

        Returns:
            Number of results removed
        """
        with self._lock:
            return self._evict_expired_locked()

    def clear(self) -> int:
        """
        Remove all stored results and content.

        Returns:
            Number of results removed
        """
        with self._lock:
            count = len(self._results)
            self._results.clear()
            self._content.clear()
            self._expires_at.clear()
            logger.info(f"Cleared {count} retrieval results from store")
            return count

    def _store_locked(self, result: RetrievalResult) -> None:
        retrieval_id = result.retrieval_id
        self._results[retrieval_id] = result
        if result.is_final:
            self._expires_at.setdefault(retrieval_id, self._clock() + self._ttl)

    def _evict_expired_locked(self) -> int:
        now = self._clock()
        expired = [rid for rid, expires_at in self._expires_at.items() if expires_at <= now]
        for retrieval_id in expired:
            del self._expires_at[retrieval_id]
            self._results.pop(retrieval_id, None)
            if self._content.pop(retrieval_id, None) is not None:
                logger.info(f"Dropped undownloaded content for retrieval {retrieval_id[:8]}")
        if expired:
            logger.debug(f"Evicted {len(expired)} expired retrieval results")
        return len(expired)


class RetrievalService:
    """
    Runs retrievals on a background event loop.

    Attributes:
        result_store: RetrievalResultStore for reading results
        is_running: True while the event loop thread is alive
    """

    def __init__(
        self,
        client_manager: ClientManager,
        wait_scale: float = 1.0,
        orchestrator: Optional[RetrievalOrchestrator] = None,
        result_ttl: float = DEFAULT_RESULT_TTL_SECONDS
    ):
        """
        Initialize retrieval service.

        Args:
            client_manager: Initialized ClientManager
            wait_scale: Multiplier for every tier's wait policy
            orchestrator: Orchestrator to use (built from the manager's
                client if not provided)
            result_ttl: Seconds a finished retrieval stays readable

        Raises:
            ValueError: If client_manager is not initialized
        """
        if not client_manager.is_initialized:
            raise ValueError("ClientManager must be initialized before creating RetrievalService")

        self._orchestrator = orchestrator or RetrievalOrchestrator(
            client_manager.client, wait_scale=wait_scale
        )
        self._result_store = RetrievalResultStore(ttl_seconds=result_ttl)
        self._sweep_interval = min(result_ttl, MAX_SWEEP_INTERVAL_SECONDS)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

        self._pending: Dict[str, concurrent.futures.Future] = {}
        self._pending_lock = threading.Lock()

        logger.info("RetrievalService initialized")

    @property
    def result_store(self) -> RetrievalResultStore:
        return self._result_store

    @property
    def client(self):
        """GlacierClient facade the retrievals use."""
        return self._orchestrator.client

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the event loop thread."""
        if self.is_running:
            raise RuntimeError("RetrievalService already started")

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop_thread_main,
            args=(self._loop,),
            name="RetrievalLoop",
            daemon=True
        )
        self._thread.start()
        asyncio.run_coroutine_threadsafe(self._sweep_expired(), self._loop)
        logger.info("Retrieval event loop started")

    def submit(self, archive_id: str, vault_id: str, tier) -> str:
        """
        Start a retrieval in the background.

        Args:
            archive_id: Archive to retrieve
            vault_id: Vault holding the archive
            tier: Tier or tier text

        Returns:
            retrieval_id (UUID string) for polling

        Raises:
            InvalidTierError: If the tier text does not parse
            RuntimeError: If the service is not running
        """
        if not self.is_running:
            raise RuntimeError("RetrievalService is not running - call start() first")

        resolved = resolve_tier(tier)
        retrieval_id = str(uuid.uuid4())

        self._result_store.put_result(
            RetrievalResult.create_pending(retrieval_id, archive_id, vault_id, resolved.display_name)
        )

        logger.info(
            f"Accepted retrieval {retrieval_id[:8]}: archive={archive_id} "
            f"vault={vault_id} tier={resolved.display_name}"
        )

        future = asyncio.run_coroutine_threadsafe(
            self._run_retrieval(retrieval_id, archive_id, vault_id, resolved),
            self._loop
        )
        with self._pending_lock:
            self._pending[retrieval_id] = future
        future.add_done_callback(lambda _: self._forget(retrieval_id))

        return retrieval_id

    def call(self, coro: Awaitable[T], timeout: float = 60.0) -> T:
        """
        Run a short coroutine (vault listing, upload) on the loop and wait.

        Raises:
            RuntimeError: If the service is not running
            concurrent.futures.TimeoutError: If it takes longer than timeout
        """
        if not self.is_running:
            if asyncio.iscoroutine(coro):
                coro.close()
            raise RuntimeError("RetrievalService is not running - call start() first")
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout=timeout)

    def get_result(self, retrieval_id: str) -> Optional[RetrievalResult]:
        return self._result_store.get_result(retrieval_id)

    def take_content(self, retrieval_id: str) -> Optional[Tuple[bytes, Optional[str]]]:
        """Hand out downloaded content once; None if absent or already taken."""
        return self._result_store.take_content(retrieval_id)

    def is_pending(self, retrieval_id: str) -> bool:
        with self._pending_lock:
            future = self._pending.get(retrieval_id)
            return future is not None and not future.done()

    def cancel(self, retrieval_id: str) -> bool:
        """
        Stop waiting for a retrieval.

        The remote job is not cancelled; it runs until the service expires it.

        Returns:
            True if a running retrieval was cancelled
        """
        with self._pending_lock:
            future = self._pending.get(retrieval_id)
        if future is None:
            return False
        cancelled = future.cancel()
        if cancelled:
            self._result_store.update(retrieval_id, lambda r: r.with_cancelled())
            logger.info(f"Retrieval {retrieval_id[:8]} abandoned; remote job left running")
        return cancelled

    def shutdown(self, timeout: float = 5.0) -> None:
        """
        Abandon running retrievals and stop the event loop.

        Call this during application shutdown.

        Args:
            timeout: Max seconds to wait for the loop thread
        """
        with self._pending_lock:
            pending = list(self._pending)

        if pending:
            logger.info(f"Abandoning {len(pending)} running retrievals")
            for retrieval_id in pending:
                self.cancel(retrieval_id)

        if self._loop is not None and self.is_running:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Retrieval event loop did not stop in time")

        logger.info("Retrieval service shutdown complete")

    async def _sweep_expired(self) -> None:
        """Evict expired results until the loop stops."""
        asyncio.current_task().set_name("ResultSweeper")
        while True:
            await asyncio.sleep(self._sweep_interval)
            self._result_store.evict_expired()

    def _forget(self, retrieval_id: str) -> None:
        with self._pending_lock:
            self._pending.pop(retrieval_id, None)

    @staticmethod
    def _loop_thread_main(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            tasks = asyncio.all_tasks(loop)
            for task in tasks:
                task.cancel()
            if tasks:
                loop.run_until_complete(asyncio.gather(*tasks, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_default_executor())
            loop.close()

    async def _run_retrieval(
        self,
        retrieval_id: str,
        archive_id: str,
        vault_id: str,
        tier
    ) -> None:
        """
        Task body for one retrieval.

        Every outcome ends up in the result store; unexpected exceptions are
        recorded and then re-raised into the task's future.
        """
        asyncio.current_task().set_name(f"Retrieval-{retrieval_id[:8]}")
        job_logger = get_job_logger(retrieval_id)

        def on_submitted(handle: JobHandle) -> None:
            self._result_store.update(retrieval_id, lambda r: r.with_submitted(handle))

        try:
            output = await self._orchestrator.retrieve(
                archive_id, vault_id, tier, on_submitted=on_submitted
            )

            job_id = self._result_store.get_result(retrieval_id).job_id
            try:
                data = await asyncio.to_thread(output.read)
            except (BotoCoreError, OSError) as e:
                raise CompletionFailedError(job_id, vault_id, cause=e) from e

            self._result_store.put_content(retrieval_id, data, output.content_type)
            self._result_store.update(retrieval_id, lambda r: r.with_completed(output, len(data)))
            job_logger.info(f"Retrieval complete: {len(data)} bytes, checksum={output.checksum}")

        except RetrievalError as e:
            job_logger.error(f"Retrieval failed ({e.kind.value}): {e.message}")
            self._result_store.update(retrieval_id, lambda r: r.with_failed(e))

        except asyncio.CancelledError:
            self._result_store.update(retrieval_id, lambda r: r.with_cancelled())
            raise

        except Exception as e:
            job_logger.error(f"Unexpected retrieval failure: {e}", exc_info=True)
            self._result_store.update(retrieval_id, lambda r: r.with_internal_error(e))
            raise
