"""Exceptions raised by podinformer."""

__all__ = [
    "PodInformerError",
    "ConfigurationError",
    "LifecycleError",
    "FeedError",
]


class PodInformerError(Exception):
    """Generic base exception used for this library."""


class ConfigurationError(PodInformerError, ValueError):
    """Raised at construction when the informer options are unusable."""


class LifecycleError(PodInformerError, RuntimeError):
    """Raised when run() or stop() is called in the wrong lifecycle state.

    Calling stop() twice, or before run(), is a programming defect and is
    never silently tolerated.
    """

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(f"Cannot {operation}() an informer in state '{state}'")
        self.operation = operation
        self.state = state


class FeedError(PodInformerError):
    """Raised when the change feed cannot establish its initial listing."""
