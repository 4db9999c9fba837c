"""Collector package for podinformer.

Provides change feeds that turn a list+watch subscription into the typed
event stream the informer loop consumes.

Submodules
----------
feed     -- ChangeFeed: the event-source contract (push FeedEvents onto a queue).
pod_feed -- KubePodFeed: kubernetes-asyncio list/watch of pods with relist,
            periodic resync and exponential back-off.
"""

from podinformer.collector.feed import ChangeFeed
from podinformer.collector.pod_feed import KubePodFeed

__all__ = ["ChangeFeed", "KubePodFeed"]
