"""Consumer-facing pod snapshot records and informer lifecycle states."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class InformerState(StrEnum):
    """Lifecycle state of a PodInformer.

    CREATED -> RUNNING -> STOPPING -> STOPPED.  STOPPED is terminal; an
    informer is never restarted.
    """

    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PodRecord:
    """Flattened view of one discovered pod, as delivered to the callback."""

    namespace: str
    name: str
    ip: str
    ready: bool
