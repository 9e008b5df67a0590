import asyncio
import logging
from typing import Optional

from client.view_model import ClientViewModel
from domain.errors import PostNotFound
from services.broadcast import BroadcastBus, Subscription
from services.post_service import PostService

logger = logging.getLogger(__name__)


class LiveFeed:
    """Keeps one ClientViewModel in sync with the server.

    Subscribes before fetching the snapshot, so nothing published in between
    is lost; events the snapshot already reflects merge as no-ops.
    """

    def __init__(self, service: PostService, bus: BroadcastBus, sort_key: str = "date"):
        self.service = service
        self.bus = bus
        self.sort_key = sort_key
        self.view = ClientViewModel()
        self.subscription: Optional[Subscription] = None
        self._dropped_at_sync = 0

    @property
    def needs_resync(self) -> bool:
        """True once the bus dropped an event for us since the last snapshot."""
        return self.subscription is not None and self.subscription.dropped > self._dropped_at_sync

    async def start(self) -> None:
        if self.subscription is None:
            self.subscription = self.bus.subscribe()
        await self.resync()

    async def resync(self) -> None:
        """Refetch the list and the open post; the only way to recover missed events."""
        if self.subscription is not None:
            self._dropped_at_sync = self.subscription.dropped
        self.view.load_posts(await self.service.list_posts(self.sort_key))
        if self.view.detail is not None:
            try:
                self.view.open_post(await self.service.get_post(self.view.detail.id))
            except PostNotFound:
                logger.warning(f"Open post '{self.view.detail.id}' no longer resolves; closing it")
                self.view.close_post()

    async def open_post(self, post_id: str) -> None:
        self.view.open_post(await self.service.get_post(post_id))

    def drain(self) -> int:
        """Apply every event already queued; returns how many changed the view."""
        if self.subscription is None:
            raise RuntimeError("LiveFeed.start() has not been called")
        changed = 0
        while True:
            try:
                event = self.subscription.queue.get_nowait()
            except asyncio.QueueEmpty:
                return changed
            changed += self.view.apply(event)

    async def run(self) -> None:
        """Apply events as they arrive until cancelled."""
        if self.subscription is None:
            await self.start()
        async for event in self.bus.listen(self.subscription):
            if self.needs_resync:
                await self.resync()
            self.view.apply(event)

    def close(self) -> None:
        if self.subscription is not None:
            self.bus.unsubscribe(self.subscription)
            self.subscription = None
