"""podinformer: keeps a callback supplied with the current set of matching pods."""

from podinformer.exceptions import ConfigurationError, FeedError, LifecycleError, PodInformerError
from podinformer.informer import InformerOptions, PodInformer
from podinformer.models.pods import InformerState, PodRecord

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "FeedError",
    "InformerOptions",
    "InformerState",
    "LifecycleError",
    "PodInformer",
    "PodInformerError",
    "PodRecord",
    "__version__",
]
