from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import threading

import httpx

from ..config import DeliveryConfig
from ..errors import DeliveryError
from ..extractor import TransactionPayload
from .payload import build_headers, encode_payload


@dataclass
class DeliveryAttempt:
    payload: TransactionPayload
    attempt_count: int = 0
    last_error: str | None = None
    next_retry_at: datetime | None = None


@dataclass
class DeliveryStats:
    accepted: int = 0
    delivered: int = 0
    retried: int = 0
    dropped: int = 0
    rejected: int = 0


def backoff_delay(attempt_count: int, base: float, cap: float) -> float:
    return min(base * (2 ** attempt_count), cap)


class DeliveryQueue:
    """Forwards payloads to the ingestion endpoint from a fixed pool of workers.

    enqueue() is the only method the capture path calls. It never blocks and
    never raises; everything after it happens on the event loop. A failed
    attempt waits for its retry on a loop timer rather than in a worker, so a
    slow or failing payload never holds up the others.

    The queue_size bound is enforced by a counter under a thread lock before
    anything is scheduled, so enqueue() answers accurately from any thread.
    Retries re-enter the queue without counting against admission.
    """

    def __init__(self, config: DeliveryConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._logger = logging.getLogger(__name__)
        self._client = client
        self._owns_client = client is None
        self._headers = build_headers(config)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[DeliveryAttempt] | None = None
        self._workers: list[asyncio.Task] = []
        self._retry_timers: dict[int, asyncio.TimerHandle] = {}
        self._outstanding = 0
        self._idle: asyncio.Event | None = None
        self._closing = False
        self._lock = threading.Lock()
        self._depth = 0
        self.stats = DeliveryStats()

    @property
    def running(self) -> bool:
        return bool(self._workers) and not self._closing

    async def start(self) -> None:
        if self.running:
            return
        if not self._config.endpoint:
            raise ValueError("delivery.endpoint is not configured")
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._depth = 0
        self._outstanding = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closing = False
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self._config.read_timeout_seconds,
                    connect=self._config.connect_timeout_seconds,
                ),
                limits=httpx.Limits(max_connections=self._config.workers),
            )
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"delivery-worker-{index}")
            for index in range(self._config.workers)
        ]
        self._logger.debug("Delivery queue started with %s workers", self._config.workers)

    def enqueue(self, payload: TransactionPayload) -> bool:
        """Hand a payload to the workers. Safe to call from any thread."""
        reserved = False
        try:
            loop = self._loop
            if loop is None or loop.is_closed() or not self.running:
                self._logger.warning("Delivery queue not running; rejecting payload from %s", payload.source_app)
                self._reject()
                return False
            if not self._reserve():
                self._logger.error(
                    "Delivery queue full (%s); rejecting payload from %s",
                    self._config.queue_size,
                    payload.source_app,
                )
                self._reject()
                return False
            reserved = True
            attempt = DeliveryAttempt(payload=payload)
            if _on_loop(loop):
                self._accept(attempt)
            else:
                loop.call_soon_threadsafe(self._accept, attempt)
            return True
        except Exception:
            self._logger.exception("Failed to enqueue payload")
            if reserved:
                self._release()
            return False

    async def drain(self) -> None:
        """Wait until every accepted payload was delivered or dropped."""
        if self._idle is None:
            return
        await self._idle.wait()

    async def close(self) -> None:
        self._closing = True
        for handle in self._retry_timers.values():
            handle.cancel()
        pending = len(self._retry_timers) + (self._queue.qsize() if self._queue else 0)
        if pending:
            self._logger.warning("Closing delivery queue with %s undelivered payload(s)", pending)
        self._retry_timers.clear()

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        # Nothing will finish the abandoned payloads; release drain() waiters.
        self._outstanding = 0
        with self._lock:
            self._depth = 0
        if self._idle is not None:
            self._idle.set()

        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> DeliveryQueue:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _reserve(self) -> bool:
        with self._lock:
            if self._config.queue_size and self._depth >= self._config.queue_size:
                return False
            self._depth += 1
            return True

    def _release(self) -> None:
        with self._lock:
            self._depth = max(0, self._depth - 1)

    def _reject(self) -> None:
        with self._lock:
            self.stats.rejected += 1

    def _accept(self, attempt: DeliveryAttempt) -> None:
        if self._closing:
            self._release()
            self._logger.warning("Delivery queue closed; discarding payload from %s", attempt.payload.source_app)
            return
        self._queue.put_nowait(attempt)
        with self._lock:
            self.stats.accepted += 1
        self._outstanding += 1
        self._idle.clear()

    async def _worker(self, index: int) -> None:
        while True:
            attempt = await self._queue.get()
            self._release()
            try:
                await self._process(attempt)
            except Exception:
                self._logger.exception("Worker %s failed while delivering; dropping payload", index)
                self._drop(attempt)
            finally:
                self._queue.task_done()

    async def _process(self, attempt: DeliveryAttempt) -> None:
        attempt.attempt_count += 1
        try:
            await self._send(attempt.payload)
        except DeliveryError as exc:
            attempt.last_error = exc.message
            if not exc.retryable or attempt.attempt_count >= self._config.max_attempts:
                self._drop(attempt)
            else:
                self._schedule_retry(attempt)
            return

        self._logger.info(
            "Delivered payload from %s (attempt %s)",
            attempt.payload.source_app,
            attempt.attempt_count,
        )
        self.stats.delivered += 1
        self._finish()

    async def _send(self, payload: TransactionPayload) -> None:
        try:
            body = encode_payload(payload)
        except (TypeError, ValueError) as exc:
            raise DeliveryError(f"could not serialize payload: {exc}", retryable=False) from exc

        try:
            response = await self._client.post(self._config.endpoint, content=body, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise DeliveryError(f"request timed out ({exc.__class__.__name__})") from exc
        except httpx.HTTPError as exc:
            raise DeliveryError(f"transport error: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise DeliveryError(f"endpoint returned status {response.status_code}")

    def _schedule_retry(self, attempt: DeliveryAttempt) -> None:
        delay = backoff_delay(
            attempt.attempt_count,
            self._config.backoff_base_seconds,
            self._config.backoff_cap_seconds,
        )
        attempt.next_retry_at = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self.stats.retried += 1
        self._logger.warning(
            "Delivery attempt %s/%s for %s failed (%s); retrying in %.2fs",
            attempt.attempt_count,
            self._config.max_attempts,
            attempt.payload.source_app,
            attempt.last_error,
            delay,
        )
        self._retry_timers[id(attempt)] = self._loop.call_later(delay, self._requeue, attempt)

    def _requeue(self, attempt: DeliveryAttempt) -> None:
        self._retry_timers.pop(id(attempt), None)
        if self._closing:
            return
        with self._lock:
            self._depth += 1
        self._queue.put_nowait(attempt)

    def _drop(self, attempt: DeliveryAttempt) -> None:
        self.stats.dropped += 1
        self._logger.error(
            "Dropping payload from %s after %s attempt(s): %s",
            attempt.payload.source_app,
            attempt.attempt_count,
            attempt.last_error,
        )
        self._finish()

    def _finish(self) -> None:
        self._outstanding -= 1
        if self._outstanding <= 0:
            self._outstanding = 0
            self._idle.set()


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False
