"""Cache layer for podinformer.

Holds the latest known state of every in-scope pod, keyed by
(namespace, name).  Only the informer event loop mutates it.

Submodules:
    store -- LocalStore: identity-keyed, copy-on-ingest object store.
"""

from podinformer.cache.store import LocalStore

__all__ = ["LocalStore"]
