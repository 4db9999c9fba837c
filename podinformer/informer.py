"""PodInformer: keeps a pod snapshot in sync and hands it to a callback.

The informer owns a change feed and a LocalStore.  The feed runs as its own
task and pushes FeedEvents onto a single asyncio.Queue; ``run()`` drains that
queue one event at a time, applies each event to the store, re-projects the
whole store and invokes the callback.  Because there is exactly one consumer
of the queue, the callback is never invoked concurrently with itself.

Lifecycle: CREATED -> RUNNING (run) -> STOPPING (stop) -> STOPPED.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from podinformer.cache.store import LocalStore
from podinformer.collector.feed import ChangeFeed
from podinformer.collector.pod_feed import KubePodFeed
from podinformer.exceptions import ConfigurationError, LifecycleError
from podinformer.models.config import FilterSpec
from podinformer.models.events import EventType, FeedEvent
from podinformer.models.pods import InformerState, PodRecord
from podinformer.observability.logging import get_logger
from podinformer.observability.metrics import callbacks_total, events_total, snapshot_pods
from podinformer.projector import project

OnUpdate = Callable[[list[PodRecord]], Awaitable[None] | None]
FeedFactory = Callable[[FilterSpec], ChangeFeed]


@dataclass
class InformerOptions:
    """Configuration for a PodInformer.

    ``on_update`` is required.  Either ``api`` (a kubernetes_asyncio
    ``CoreV1Api``) or ``feed_factory`` must be given; when both are set the
    factory wins.  An empty ``label_selector`` matches every pod, an empty
    ``namespace`` means all namespaces, and ``resync_period`` (seconds) <= 0
    disables periodic resync.
    """

    api: Any = None
    namespace: str = ""
    label_selector: str = ""
    on_update: OnUpdate | None = None
    logger: Any = None
    debug_log: bool = False
    resync_period: float = 0.0
    feed_factory: FeedFactory | None = None


class PodInformer:
    """Maintains the snapshot of the pods selected by its options.

    ``run()`` is the single long-lived call; await it in a task of its own.
    ``stop()`` may be called from any task or thread once ``run()`` has
    started, exactly once.  Exceptions raised by the callback are not caught:
    they end ``run()`` and propagate to its caller.
    """

    def __init__(self, options: InformerOptions) -> None:
        if options.on_update is None:
            raise ConfigurationError("InformerOptions.on_update is required")
        if not callable(options.on_update):
            raise ConfigurationError("InformerOptions.on_update must be callable")
        if options.feed_factory is None and options.api is None:
            raise ConfigurationError("InformerOptions needs either api or feed_factory")

        self._options = options
        self._on_update = options.on_update
        self._log = options.logger or get_logger("informer")
        self._filter = FilterSpec(
            namespace=options.namespace,
            label_selector=options.label_selector,
            resync_period=options.resync_period,
        )
        self._feed_factory: FeedFactory = options.feed_factory or self._default_feed

        self._store = LocalStore()
        self._state = InformerState.CREATED
        self._state_lock = threading.Lock()
        self._stop_requested = asyncio.Event()
        self._stopped = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def state(self) -> InformerState:
        return self._state

    @property
    def filter_spec(self) -> FilterSpec:
        return self._filter

    @property
    def store(self) -> LocalStore:
        """The informer's store.  Read it only from the informer's event loop."""
        return self._store

    def _default_feed(self, filter_spec: FilterSpec) -> ChangeFeed:
        return KubePodFeed(self._options.api, filter_spec, logger=self._log)

    def _debug(self, event: str, **kwargs: Any) -> None:
        if self._options.debug_log:
            self._log.debug(event, **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Run the informer until stop() is called or the feed terminates.

        Raises LifecycleError if the informer was already started, and
        re-raises the feed's error if its initial listing fails.
        """
        with self._state_lock:
            if self._state is not InformerState.CREATED:
                raise LifecycleError("run", self._state)
            self._state = InformerState.RUNNING
            self._loop = asyncio.get_running_loop()

        self._log.info(
            "informer_running",
            namespace=self._filter.namespace,
            label_selector=self._filter.label_selector,
            resync_period=self._filter.resync_period,
        )

        queue: asyncio.Queue[FeedEvent] = asyncio.Queue()
        feed_task: asyncio.Task[None] | None = None
        try:
            feed = self._feed_factory(self._filter)
            feed_task = asyncio.create_task(feed.run(queue), name="podinformer-feed")
            await self._drain(queue, feed_task)
        finally:
            if feed_task is not None:
                await _cancel_and_wait(feed_task)
            self._store.clear()
            with self._state_lock:
                self._state = InformerState.STOPPED
            self._stopped.set()
            self._log.info("informer_stopped")

    def stop(self) -> None:
        """Signal run() to return.  Non-blocking; safe from another thread.

        Raises LifecycleError when called before run(), more than once, or
        after the loop that ran the informer has been closed.  Await the
        run() task to know when the informer has fully unwound.
        """
        with self._state_lock:
            if self._state is not InformerState.RUNNING:
                raise LifecycleError("stop", self._state)
            assert self._loop is not None
            try:
                self._loop.call_soon_threadsafe(self._stop_requested.set)
            except RuntimeError as exc:
                # The loop is closed; run() can never resume.
                self._state = InformerState.STOPPED
                raise LifecycleError("stop", self._state) from exc
            self._state = InformerState.STOPPING

        self._log.info("informer_stopping")

    async def wait_stopped(self) -> None:
        """Wait until run() has returned and released its resources."""
        await self._stopped.wait()

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    async def _drain(self, queue: asyncio.Queue[FeedEvent], feed_task: asyncio.Task[None]) -> None:
        stop_wait = asyncio.create_task(self._stop_requested.wait(), name="podinformer-stop")
        next_event: asyncio.Task[FeedEvent] | None = None
        try:
            while True:
                next_event = asyncio.create_task(queue.get(), name="podinformer-next-event")
                done, _ = await asyncio.wait(
                    {next_event, stop_wait, feed_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if stop_wait in done:
                    if feed_task in done:
                        # A feed that failed while stop was pending still reports its error.
                        feed_task.result()
                    return
                if next_event in done:
                    event = next_event.result()
                    next_event = None
                    await self._handle(event)
                    continue

                # The feed ended on its own.  Raises the feed's exception, if any.
                feed_task.result()
                await _cancel_and_wait(next_event)
                next_event = None
                while not queue.empty():
                    await self._handle(queue.get_nowait())
                self._log.warning("feed_terminated")
                return
        finally:
            if next_event is not None:
                await _cancel_and_wait(next_event)
            await _cancel_and_wait(stop_wait)

    async def _handle(self, event: FeedEvent) -> None:
        events_total.labels(type=event.type.value).inc()

        if event.type is EventType.RESYNCED:
            self._debug("resync", pods=len(self._store))
            return

        assert event.key is not None
        if event.type is EventType.ADDED:
            self._debug("add", key=str(event.key))
            self._store.apply_add(event.key, event.obj)
        elif event.type is EventType.UPDATED:
            self._debug("update", key=str(event.key))
            self._store.apply_update(event.key, event.obj)
        elif event.type is EventType.DELETED:
            self._debug("delete", key=str(event.key))
            self._store.apply_delete(event.key)

        await self._update()

    async def _update(self) -> None:
        """Project the whole store and deliver the snapshot to the callback."""
        objects = self._store.list_all()
        self._debug("listing_pods", size=len(objects))

        pods = project(objects, self._log)
        snapshot_pods.set(len(pods))
        callbacks_total.inc()

        result = self._on_update(pods)
        if asyncio.iscoroutine(result):
            await result


async def _cancel_and_wait(task: asyncio.Task[Any]) -> None:
    """Cancel *task* if still pending and wait for it to finish."""
    if not task.done():
        task.cancel()
    await asyncio.gather(task, return_exceptions=True)
