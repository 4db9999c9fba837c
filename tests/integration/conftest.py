"""Shared fixtures for podinformer integration tests.

Provides scripted change feeds, a snapshot-recording callback and fake
kubernetes-asyncio collaborators (CoreV1Api, Watch) so the informer and the
pod feed can be exercised end to end without a real Kubernetes cluster.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest

from podinformer.collector.feed import ChangeFeed
from podinformer.informer import InformerOptions, PodInformer
from podinformer.models.config import FilterSpec
from podinformer.models.events import FeedEvent, ObjectKey
from podinformer.models.pods import PodRecord

# ---------------------------------------------------------------------------
# Raw object factories
# ---------------------------------------------------------------------------


def make_raw_pod(
    name: str,
    namespace: str = "default",
    ip: str = "10.0.0.1",
    conditions: list[tuple[str, str]] | None = None,
    rv: str = "1",
    labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Return a raw Pod dict shaped like sanitize_for_serialization output."""
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "resourceVersion": rv,
            "labels": labels if labels is not None else {"app": "miniapi"},
        },
        "spec": {"containers": [{"name": "app", "image": "miniapi:latest"}]},
        "status": {
            "phase": "Running",
            "podIP": ip,
            "conditions": [{"type": t, "status": s} for t, s in (conditions or [])],
        },
    }


def make_added(name: str, namespace: str = "default", **kwargs: Any) -> FeedEvent:
    return FeedEvent.added(ObjectKey(namespace, name), make_raw_pod(name, namespace, **kwargs))


def make_updated(name: str, namespace: str = "default", **kwargs: Any) -> FeedEvent:
    return FeedEvent.updated(ObjectKey(namespace, name), make_raw_pod(name, namespace, **kwargs))


def make_deleted(name: str, namespace: str = "default") -> FeedEvent:
    return FeedEvent.deleted(ObjectKey(namespace, name))


# ---------------------------------------------------------------------------
# Change feeds
# ---------------------------------------------------------------------------


class ScriptedFeed(ChangeFeed):
    """Feed that pushes a fixed list of events, then idles until cancelled.

    ``fail`` is raised before any event is pushed; ``finish`` makes run()
    return after the script instead of idling.
    """

    def __init__(
        self,
        events: list[FeedEvent] | None = None,
        *,
        fail: BaseException | None = None,
        finish: bool = False,
    ) -> None:
        self.events = list(events or [])
        self.fail = fail
        self.finish = finish
        self.sink: asyncio.Queue[FeedEvent] | None = None
        self.filter_spec: FilterSpec | None = None
        self.started = asyncio.Event()
        self.cancelled = False

    async def run(self, sink: asyncio.Queue[FeedEvent]) -> None:
        self.sink = sink
        self.started.set()
        try:
            if self.fail is not None:
                raise self.fail
            for event in self.events:
                await sink.put(event)
            if self.finish:
                return
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise

    async def push(self, *events: FeedEvent) -> None:
        """Push further events once the informer has started the feed."""
        await asyncio.wait_for(self.started.wait(), timeout=2.0)
        assert self.sink is not None
        for event in events:
            await self.sink.put(event)


# ---------------------------------------------------------------------------
# Callback recorder
# ---------------------------------------------------------------------------


class SnapshotRecorder:
    """Callable that records every snapshot it receives."""

    def __init__(self) -> None:
        self.calls: list[list[PodRecord]] = []
        self._changed = asyncio.Event()

    def __call__(self, pods: list[PodRecord]) -> None:
        self.calls.append(list(pods))
        self._changed.set()

    @property
    def last(self) -> list[PodRecord]:
        return self.calls[-1]

    async def wait_for_calls(self, count: int, timeout: float = 2.0) -> None:
        async def _wait() -> None:
            while len(self.calls) < count:
                self._changed.clear()
                await self._changed.wait()

        await asyncio.wait_for(_wait(), timeout=timeout)


# ---------------------------------------------------------------------------
# Fake kubernetes-asyncio collaborators
# ---------------------------------------------------------------------------


def make_pod_list(*pods: dict[str, Any], rv: str = "100") -> SimpleNamespace:
    """Return an object shaped like V1PodList holding raw pod dicts."""
    return SimpleNamespace(items=list(pods), metadata=SimpleNamespace(resource_version=rv))


class FakeApiClient:
    def sanitize_for_serialization(self, obj: Any) -> Any:
        return copy.deepcopy(obj)


class FakeCoreV1Api:
    """CoreV1Api stand-in whose list calls return scripted results in order.

    The last scripted result is repeated once the script runs out.  A
    scripted exception is raised instead of returned.
    """

    def __init__(self, *results: Any) -> None:
        self.api_client = FakeApiClient()
        self._results = list(results)
        self.list_calls: list[tuple[str, dict[str, Any]]] = []

    def _next(self) -> Any:
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, BaseException):
            raise result
        return result

    async def list_namespaced_pod(self, **kwargs: Any) -> Any:
        self.list_calls.append(("namespaced", kwargs))
        return self._next()

    async def list_pod_for_all_namespaces(self, **kwargs: Any) -> Any:
        self.list_calls.append(("all", kwargs))
        return self._next()


def watch_event(event_type: str, raw: dict[str, Any]) -> dict[str, Any]:
    return {"type": event_type, "object": raw, "raw_object": raw}


class FakeWatch:
    def __init__(self, factory: FakeWatchFactory) -> None:
        self._factory = factory
        self._script: Any = None
        self._timeout = 0

    def stream(self, func: Callable[..., Any], **kwargs: Any) -> FakeWatch:
        self._factory.calls.append(kwargs)
        self._factory.funcs.append(func)
        self._timeout = kwargs.get("timeout_seconds", 0)
        self._script = self._factory.streams.pop(0) if self._factory.streams else None
        return self

    async def __aenter__(self) -> FakeWatch:
        self._factory.open += 1
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._factory.open -= 1
        self._factory.closed += 1

    def __aiter__(self) -> Any:
        return self._iterate()

    async def _iterate(self) -> Any:
        if self._script is None:
            # Nothing scripted: behave like an idle stream that ends at its timeout.
            await asyncio.sleep(self._timeout * self._factory.time_scale)
            return
        if isinstance(self._script, BaseException):
            raise self._script
        for event in self._script:
            if isinstance(event, BaseException):
                raise event
            yield event


class FakeWatchFactory:
    """Stand-in for ``watch.Watch``; each stream() consumes one scripted stream.

    A scripted stream is a list of watch events (exceptions in the list are
    raised at that point) or a single exception.
    """

    def __init__(self, *streams: Any, time_scale: float = 0.01) -> None:
        self.streams = list(streams)
        self.time_scale = time_scale
        self.calls: list[dict[str, Any]] = []
        self.funcs: list[Callable[..., Any]] = []
        self.open = 0
        self.closed = 0

    def __call__(self) -> FakeWatch:
        return FakeWatch(self)


async def collect(queue: asyncio.Queue[FeedEvent], count: int, timeout: float = 2.0) -> list[FeedEvent]:
    """Take *count* events off *queue*."""
    return [await asyncio.wait_for(queue.get(), timeout=timeout) for _ in range(count)]


async def cancel(task: asyncio.Task[Any]) -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def recorder() -> SnapshotRecorder:
    return SnapshotRecorder()


@pytest.fixture
def make_informer(recorder: SnapshotRecorder) -> Callable[..., PodInformer]:
    """Factory for informers wired to a feed and the shared recorder."""

    def _make(feed: ChangeFeed, **kwargs: Any) -> PodInformer:
        def _factory(spec: FilterSpec) -> ChangeFeed:
            if isinstance(feed, ScriptedFeed):
                feed.filter_spec = spec
            return feed

        kwargs.setdefault("on_update", recorder)
        return PodInformer(
            InformerOptions(
                namespace="default",
                label_selector="app=miniapi",
                feed_factory=_factory,
                **kwargs,
            )
        )

    return _make


