"""In-memory object store fed by the informer event loop."""

from __future__ import annotations

import copy
from collections.abc import Iterator

from podinformer.models.events import ObjectKey


class LocalStore:
    """Latest known state of every in-scope object, keyed by identity.

    All mutations are idempotent with respect to identity: adding a present
    key overwrites it and deleting an absent key does nothing.  Objects are
    deep-copied on ingest so the store never aliases a caller's data.
    Iteration order is not part of the contract.

    The informer only writes through ``apply_*`` and projects ``list_all()``.
    ``get``, ``keys``, ``in``, ``len`` and iteration are the read API that
    ``PodInformer.store`` exposes to callers on the informer's loop.
    """

    def __init__(self) -> None:
        self._objects: dict[ObjectKey, object] = {}

    def apply_add(self, key: ObjectKey, obj: object) -> None:
        self._objects[key] = copy.deepcopy(obj)

    def apply_update(self, key: ObjectKey, obj: object) -> None:
        self._objects[key] = copy.deepcopy(obj)

    def apply_delete(self, key: ObjectKey) -> None:
        self._objects.pop(key, None)

    def list_all(self) -> list[object]:
        """Return every stored object."""
        return list(self._objects.values())

    def get(self, key: ObjectKey) -> object | None:
        return self._objects.get(key)

    def keys(self) -> set[ObjectKey]:
        return set(self._objects)

    def clear(self) -> None:
        self._objects.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[ObjectKey]:
        return iter(list(self._objects))
