"""Core data structures for podinformer."""

from podinformer.models.config import AppConfig, FilterSpec, InformerConfig, LogConfig
from podinformer.models.events import EventType, FeedEvent, ObjectKey
from podinformer.models.pods import InformerState, PodRecord

__all__ = [
    "AppConfig",
    "EventType",
    "FeedEvent",
    "FilterSpec",
    "InformerConfig",
    "InformerState",
    "LogConfig",
    "ObjectKey",
    "PodRecord",
]
