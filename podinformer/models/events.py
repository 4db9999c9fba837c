"""Change feed event data structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class EventType(StrEnum):
    """Kind of change delivered by a change feed."""

    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"
    RESYNCED = "resynced"


@dataclass(frozen=True, order=True)
class ObjectKey:
    """Stable identity of a namespaced object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    @classmethod
    def from_raw(cls, raw: object) -> ObjectKey | None:
        """Extract the identity from a raw object dict, or None if it has none."""
        if not isinstance(raw, dict):
            return None
        metadata = raw.get("metadata")
        if not isinstance(metadata, dict):
            return None
        name = metadata.get("name")
        if not name:
            return None
        return cls(namespace=str(metadata.get("namespace") or ""), name=str(name))


@dataclass(frozen=True)
class FeedEvent:
    """A single typed event pushed by a change feed onto the informer queue.

    ``obj`` is the opaque remote object for ADDED/UPDATED and None otherwise.
    ``key`` is None only for RESYNCED.
    """

    type: EventType
    key: ObjectKey | None = None
    obj: object | None = None

    @classmethod
    def added(cls, key: ObjectKey, obj: object) -> FeedEvent:
        return cls(EventType.ADDED, key, obj)

    @classmethod
    def updated(cls, key: ObjectKey, obj: object) -> FeedEvent:
        return cls(EventType.UPDATED, key, obj)

    @classmethod
    def deleted(cls, key: ObjectKey) -> FeedEvent:
        return cls(EventType.DELETED, key)

    @classmethod
    def resynced(cls) -> FeedEvent:
        return cls(EventType.RESYNCED)
