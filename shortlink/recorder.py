"""Write-behind access recorder.

Redirects hand an ``AccessEvent`` to this recorder and return immediately; a
single background task drains the queue and persists each event, so redirect
latency never includes log-write latency.

Flow Diagram
============
::
    redirect handlers (many)          recorder task (one)
    ┌───────────────┐                 ┌────────────────────┐
    │ enqueue()     │──put_nowait──▶  │ queue.get()        │
    │ never blocks  │   (unbounded)   │        ▼           │
    └───────────────┘                 │ INSERT access_logs │
                                      │        ▼           │
                                      │ UPDATE shortlinks  │
                                      │ access_count + 1   │
                                      └────────────────────┘

Key Behaviours
===============
- FIFO with a single consumer, so events are persisted in arrival order.
- The two writes per event are separate commits; a crash between them can
  leave a counter without its log row or the reverse.
- A failed event is logged and dropped. Nothing is retried.
- The queue is unbounded and in memory: events still queued when the process
  stops are lost, and sustained overload grows memory (watch the queue depth
  gauge).
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from prometheus_client import Counter, Gauge

from shortlink.schemas import AccessEvent
from shortlink.store import ShortlinkStore

__all__ = ["AccessRecorder"]

logger = logging.getLogger(__name__)

ACCESS_EVENTS_ENQUEUED_TOTAL = Counter(
    "shortlink_access_events_enqueued_total",
    "Access events handed to the recorder queue",
)
ACCESS_EVENTS_RECORDED_TOTAL = Counter(
    "shortlink_access_events_recorded_total",
    "Access events persisted as a log row plus counter increment",
)
ACCESS_EVENTS_DROPPED_TOTAL = Counter(
    "shortlink_access_events_dropped_total",
    "Access events lost to enqueue or persistence failures",
    ["stage"],
)
ACCESS_QUEUE_DEPTH = Gauge(
    "shortlink_access_queue_depth",
    "Access events waiting to be persisted",
)

StoreScope = Callable[[], AbstractAsyncContextManager[ShortlinkStore]]


class AccessRecorder:
    """Single-consumer queue that persists access events off the request path.

    Args:
        store_scope: Zero-argument callable returning an async context manager
            that yields a ``ShortlinkStore``; one scope is opened per event.
    """

    def __init__(self, store_scope: StoreScope):
        self._store_scope = store_scope
        self._queue: asyncio.Queue[AccessEvent] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def depth(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._consume(), name="access-recorder")
        logger.info("Access recorder started")

    async def stop(self) -> None:
        """Cancel the consumer. Queued events are not drained."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        if self.depth:
            logger.warning(f"Access recorder stopped with {self.depth} events still queued")

    def enqueue(self, event: AccessEvent) -> bool:
        """Queue an event without waiting. Returns False if nothing will consume it."""
        if not self.running:
            ACCESS_EVENTS_DROPPED_TOTAL.labels(stage="enqueue").inc()
            logger.error(f"Access recorder is not running, dropping event for shortlink {event.shortlink_id}")
            return False

        self._queue.put_nowait(event)
        ACCESS_EVENTS_ENQUEUED_TOTAL.inc()
        ACCESS_QUEUE_DEPTH.set(self._queue.qsize())
        return True

    async def join(self) -> None:
        """Wait until every event queued so far has been handled."""
        await self._queue.join()

    async def record(self, event: AccessEvent) -> None:
        async with self._store_scope() as store:
            await store.insert_access_log(event.shortlink_id, event.ip_address, event.user_agent)
            await store.increment_access_count(event.shortlink_id)
        ACCESS_EVENTS_RECORDED_TOTAL.inc()

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.record(event)
            except Exception:
                ACCESS_EVENTS_DROPPED_TOTAL.labels(stage="persist").inc()
                logger.warning(f"Failed to record access for shortlink {event.shortlink_id}", exc_info=True)
            finally:
                self._queue.task_done()
                ACCESS_QUEUE_DEPTH.set(self._queue.qsize())
