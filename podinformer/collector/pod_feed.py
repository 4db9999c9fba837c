"""KubePodFeed: list+watch of pods via kubernetes-asyncio.

Lifecycle of one feed:
  initial list  -> burst of ADDED, remembers each pod's resourceVersion
  watch         -> ADDED / UPDATED / DELETED from the list's resourceVersion
  410 Gone      -> relist and reconcile drift against the remembered pods
  resync due    -> relist, reconcile, then one RESYNCED pseudo-event
  other errors  -> exponential back-off with jitter, then resume watching
  early close   -> a stream that ends at once with no events backs off too,
                   as does a 410 straight after a 410 relist

Only the initial list may fail the feed (FeedError).  After that the feed
never terminates on its own; it stops when its task is cancelled.
"""

from __future__ import annotations

import asyncio
import math
import random
from collections.abc import Callable
from typing import Any

from kubernetes_asyncio import watch
from kubernetes_asyncio.client.exceptions import ApiException

from podinformer.collector.feed import ChangeFeed
from podinformer.exceptions import FeedError
from podinformer.models.config import FilterSpec
from podinformer.models.events import FeedEvent, ObjectKey
from podinformer.observability.logging import get_logger
from podinformer.observability.metrics import relists_total, watch_reconnects_total

_HTTP_GONE = 410
_HTTP_AUTH_FAILURES = (401, 403)

_DEFAULT_WATCH_TIMEOUT = 300
_INITIAL_BACKOFF = 1.0
_DEFAULT_MAX_BACKOFF = 30.0
# A watch that ends sooner than this without any event counts as a failure.
_MIN_WATCH_DURATION = 1.0


class KubePodFeed(ChangeFeed):
    """Change feed for the pods selected by a FilterSpec.

    Args:
        api:           kubernetes_asyncio ``CoreV1Api`` instance.
        filter_spec:   namespace, label selector and resync period.
        watch_timeout: server-side watch timeout in seconds; each watch is
                       re-established when it expires.
        max_backoff:   cap in seconds for the retry back-off.
        watch_factory: builds the watch helper; defaults to ``watch.Watch``.
        logger:        structlog logger; defaults to the ``feed`` component.
    """

    def __init__(
        self,
        api: Any,
        filter_spec: FilterSpec,
        *,
        watch_timeout: int = _DEFAULT_WATCH_TIMEOUT,
        max_backoff: float = _DEFAULT_MAX_BACKOFF,
        watch_factory: Callable[[], Any] = watch.Watch,
        logger: Any = None,
    ) -> None:
        self._api = api
        self._filter = filter_spec
        self._watch_timeout = watch_timeout
        self._max_backoff = max_backoff
        self._watch_factory = watch_factory
        self._log = logger or get_logger("feed")
        # identity -> resourceVersion of the last state pushed to the sink
        self._known: dict[ObjectKey, str] = {}
        self._next_resync: float | None = None

    # ------------------------------------------------------------------
    # ChangeFeed
    # ------------------------------------------------------------------

    async def run(self, sink: asyncio.Queue[FeedEvent]) -> None:
        loop = asyncio.get_running_loop()
        try:
            resource_version: str | None = await self._relist(sink)
        except Exception as exc:
            raise FeedError(f"initial pod list failed: {exc}") from exc

        self._log.info(
            "feed_started",
            namespace=self._filter.namespace,
            label_selector=self._filter.label_selector,
            pods=len(self._known),
            resource_version=resource_version,
        )
        self._schedule_resync(loop.time())

        backoff = _INITIAL_BACKOFF
        # Set by a 410 and cleared once a watch returns normally.
        expired = False
        while True:
            try:
                if resource_version is None:
                    relists_total.labels(reason="expired").inc()
                    resource_version = await self._relist(sink)
                if self._resync_due(loop.time()):
                    relists_total.labels(reason="resync").inc()
                    resource_version = await self._relist(sink)
                    await sink.put(FeedEvent.resynced())
                    self._schedule_resync(loop.time())
                started = loop.time()
                resource_version, received = await self._watch(sink, resource_version, started)
                expired = False
                if received == 0 and loop.time() - started < _MIN_WATCH_DURATION:
                    self._log.warning("watch_closed_early", resource_version=resource_version)
                    await self._sleep_backoff(backoff)
                    backoff = min(backoff * 2, self._max_backoff)
                else:
                    backoff = _INITIAL_BACKOFF
            except ApiException as exc:
                if exc.status == _HTTP_GONE:
                    self._log.info("watch_expired_relisting", resource_version=resource_version)
                    if expired:
                        # Expired again straight after a relist.
                        await self._sleep_backoff(backoff)
                        backoff = min(backoff * 2, self._max_backoff)
                    expired = True
                    resource_version = None
                    continue
                if exc.status in _HTTP_AUTH_FAILURES:
                    self._log.error("watch_unauthorized", status=exc.status, reason=exc.reason)
                else:
                    self._log.warning("watch_api_error", status=exc.status, reason=exc.reason)
                await self._sleep_backoff(backoff)
                backoff = min(backoff * 2, self._max_backoff)
            except Exception as exc:
                self._log.warning("watch_transport_error", error=str(exc), error_type=type(exc).__name__)
                await self._sleep_backoff(backoff)
                backoff = min(backoff * 2, self._max_backoff)
            watch_reconnects_total.inc()

    # ------------------------------------------------------------------
    # List / watch helpers
    # ------------------------------------------------------------------

    def _list_call(self) -> tuple[Callable[..., Any], dict[str, Any]]:
        """Return the list function and its kwargs for the configured scope."""
        kwargs: dict[str, Any] = {}
        if self._filter.label_selector:
            kwargs["label_selector"] = self._filter.label_selector
        if self._filter.namespace:
            kwargs["namespace"] = self._filter.namespace
            return self._api.list_namespaced_pod, kwargs
        return self._api.list_pod_for_all_namespaces, kwargs

    async def _relist(self, sink: asyncio.Queue[FeedEvent]) -> str:
        """List all pods and push whatever differs from the known state.

        On the first call every pod is unknown, so the result is a burst of
        ADDED events.  Returns the list's resourceVersion.
        """
        list_fn, kwargs = self._list_call()
        pod_list = await list_fn(**kwargs)

        seen: dict[ObjectKey, str] = {}
        for item in pod_list.items or []:
            raw = self._api.api_client.sanitize_for_serialization(item)
            key = ObjectKey.from_raw(raw)
            if key is None:
                self._log.error("list_item_without_identity", item_type=type(item).__name__)
                continue
            version = str(raw["metadata"].get("resourceVersion") or "")
            seen[key] = version
            previous = self._known.get(key)
            if previous is None:
                await sink.put(FeedEvent.added(key, raw))
            elif previous != version:
                await sink.put(FeedEvent.updated(key, raw))

        for key in self._known.keys() - seen.keys():
            await sink.put(FeedEvent.deleted(key))

        self._known = seen
        return str(pod_list.metadata.resource_version or "")

    async def _watch(
        self,
        sink: asyncio.Queue[FeedEvent],
        resource_version: str,
        now: float,
    ) -> tuple[str, int]:
        """Run one watch stream to completion.

        Returns the newest resourceVersion seen and the number of events
        received, bookmarks included.  An ERROR event is raised as
        ApiException with the status code it carries, so an expired version
        (410) takes the same path as a 410 on connect.
        """
        list_fn, kwargs = self._list_call()
        watcher = self._watch_factory()
        received = 0
        async with watcher.stream(
            list_fn,
            resource_version=resource_version,
            timeout_seconds=self._watch_timeout_seconds(now),
            **kwargs,
        ) as stream:
            async for event in stream:
                received += 1
                event_type = str(event.get("type", ""))
                raw = event.get("raw_object")
                if not isinstance(raw, dict):
                    self._log.error("watch_event_without_object", event_type=event_type)
                    continue

                if event_type == "ERROR":
                    raise ApiException(status=raw.get("code"), reason=raw.get("message"))

                metadata = raw.get("metadata") or {}
                version = str(metadata.get("resourceVersion") or "")
                if version:
                    resource_version = version
                if event_type == "BOOKMARK":
                    continue

                key = ObjectKey.from_raw(raw)
                if key is None:
                    self._log.error("watch_object_without_identity", event_type=event_type)
                    continue

                if event_type == "ADDED":
                    self._known[key] = version
                    await sink.put(FeedEvent.added(key, raw))
                elif event_type == "MODIFIED":
                    self._known[key] = version
                    await sink.put(FeedEvent.updated(key, raw))
                elif event_type == "DELETED":
                    self._known.pop(key, None)
                    await sink.put(FeedEvent.deleted(key))
                else:
                    self._log.warning("watch_unknown_event_type", event_type=event_type, key=str(key))
        return resource_version, received

    # ------------------------------------------------------------------
    # Timing
    # ------------------------------------------------------------------

    def _schedule_resync(self, now: float) -> None:
        if self._filter.resync_period > 0:
            self._next_resync = now + self._filter.resync_period
        else:
            self._next_resync = None

    def _resync_due(self, now: float) -> bool:
        return self._next_resync is not None and now >= self._next_resync

    def _watch_timeout_seconds(self, now: float) -> int:
        """Server-side watch timeout, shortened so the stream ends by the next resync."""
        if self._next_resync is None:
            return self._watch_timeout
        remaining = max(1.0, self._next_resync - now)
        return min(self._watch_timeout, max(1, math.ceil(remaining)))

    async def _sleep_backoff(self, backoff: float) -> None:
        jittered = backoff * (0.5 + random.random())  # noqa: S311
        await asyncio.sleep(jittered)
