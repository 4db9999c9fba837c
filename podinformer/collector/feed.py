"""Change feed contract consumed by the informer loop."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from podinformer.models.events import FeedEvent


class ChangeFeed(ABC):
    """Abstract source of FeedEvents for one FilterSpec.

    ``run`` pushes events onto *sink* until its task is cancelled.  The
    initial listing must arrive as a burst of ADDED events before any
    UPDATED or DELETED for the same identity.  Once the initial listing has
    been delivered, transport failures are handled internally and never
    escape ``run``; a failing initial listing raises FeedError.
    """

    @abstractmethod
    async def run(self, sink: asyncio.Queue[FeedEvent]) -> None:
        """Deliver events to *sink*; return or raise only as described above."""
