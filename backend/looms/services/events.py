"""In-process publish/subscribe for lot lifecycle events.

Handlers are coroutines ``handler(db, event)`` and run inside the
publisher's transaction, in subscription order.  A failing handler aborts
the whole request, so a lot is never closed with stale references left
behind.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LotClosed:
    """A lot left the Active state or was deleted."""
    lot_id: str
    reason: str  # completed | cancelled | deleted


Handler = Callable[[AsyncSession, object], Awaitable[None]]


class EventDispatcher:

    def __init__(self):
        self._subscribers: dict[type, list[Handler]] = {}

    def subscribe(self, event_type: type):
        """Decorator registering a coroutine for one event type."""
        def register(handler: Handler) -> Handler:
            self._subscribers.setdefault(event_type, []).append(handler)
            return handler
        return register

    def handlers_for(self, event_type: type) -> list[Handler]:
        return list(self._subscribers.get(event_type, []))

    async def publish(self, db: AsyncSession, event) -> None:
        handlers = self.handlers_for(type(event))
        logger.debug("Publishing %r to %d handler(s)", event, len(handlers))
        for handler in handlers:
            await handler(db, event)


dispatcher = EventDispatcher()
