"""Snapshot projection: raw stored pods -> flat PodRecord list.

The projector is a pure function of the store contents.  An object it cannot
interpret is logged and skipped; it never aborts the rest of the snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from podinformer.models.pods import PodRecord
from podinformer.observability.logging import get_logger
from podinformer.observability.metrics import malformed_objects_total

_POD_READY = "Ready"
_CONDITION_TRUE = "True"


class _MalformedObject(Exception):
    """Raised internally when a stored object does not have the shape of a pod."""


def is_pod_ready(obj: Mapping[str, Any]) -> bool:
    """Return True iff the pod carries a Ready condition whose status is True."""
    status = obj.get("status") or {}
    for condition in status.get("conditions") or []:
        if condition.get("type") == _POD_READY and condition.get("status") == _CONDITION_TRUE:
            return True
    return False


def _to_record(obj: Mapping[str, Any]) -> PodRecord:
    metadata = obj.get("metadata")
    if not isinstance(metadata, Mapping) or not metadata.get("name"):
        raise _MalformedObject("missing metadata.name")

    status = obj.get("status") or {}
    if not isinstance(status, Mapping):
        raise _MalformedObject(f"status is {type(status).__name__}, not a mapping")
    conditions = status.get("conditions") or []
    if not isinstance(conditions, list) or not all(isinstance(c, Mapping) for c in conditions):
        raise _MalformedObject("status.conditions is not a list of mappings")

    return PodRecord(
        namespace=str(metadata.get("namespace") or ""),
        name=str(metadata["name"]),
        ip=str(status.get("podIP") or ""),
        ready=is_pod_ready(obj),
    )


def project(objects: Iterable[object], logger: Any = None) -> list[PodRecord]:
    """Map every stored object to a PodRecord, in input order.

    Zero objects yields an empty list, which is a valid snapshot.
    """
    log = logger or get_logger("projector")
    pods: list[PodRecord] = []
    for obj in objects:
        if not isinstance(obj, Mapping):
            malformed_objects_total.inc()
            log.error("unexpected_object_type", object_type=type(obj).__name__)
            continue
        try:
            pods.append(_to_record(obj))
        except _MalformedObject as exc:
            malformed_objects_total.inc()
            log.error("malformed_object", error=str(exc))
    return pods
