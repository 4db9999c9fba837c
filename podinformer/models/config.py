"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FilterSpec:
    """Which remote pods are in scope for an informer.

    An empty label selector matches every pod in the namespace; an empty
    namespace means all namespaces.  ``resync_period`` is in seconds and a
    value <= 0 disables periodic resync.
    """

    namespace: str
    label_selector: str = ""
    resync_period: float = 0.0


@dataclass
class InformerConfig:
    """Informer settings for the example host program."""

    namespace: str = "default"
    label_selector: str = "app=miniapi"
    resync_period: float = 0.0
    debug_log: bool = False


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class AppConfig:
    """Top-level configuration of the example host program."""

    interval: float = 600.0
    churn_limit: int = 0
    kubeconfig: str = ""
    informer: InformerConfig = field(default_factory=InformerConfig)
    log: LogConfig = field(default_factory=LogConfig)
