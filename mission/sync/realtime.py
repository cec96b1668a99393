# mission/sync/realtime.py
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from redis.exceptions import RedisError

from mission.store.base import ChangeFeed, StateStore
from mission.sync.base import Delivery, OnRoom, OnTeams, Snapshot, TransportUnavailable, Unsubscribe
from mission.sync.notify import ChangeNotifier
from mission.sync.store_transport import StoreTransport

logger = logging.getLogger(__name__)


class RealtimeTransport(StoreTransport):
    """
    Push variant over the store's own change feed (Redis pub/sub in
    production). Every store write publishes a notice; each notice makes the
    subscriber re-read the room and deliver what changed.

    A dropped feed is re-subscribed after `reconnect_delay` and followed by a
    fresh full read, since notices sent while disconnected are gone.
    """

    def __init__(
        self,
        repo: StateStore,
        feed: Optional[ChangeFeed] = None,
        notifier: Optional[ChangeNotifier] = None,
        reconnect_delay: float = 1.0,
    ) -> None:
        super().__init__(repo, notifier)
        self.feed: ChangeFeed = feed if feed is not None else repo  # type: ignore[assignment]
        self.reconnect_delay = reconnect_delay

    def subscribe(self, room_code: str, on_room: OnRoom, on_teams: OnTeams) -> Unsubscribe:
        self.room_code = room_code
        task = self._spawn(self._follow(room_code, Delivery(on_room, on_teams)))
        return self._stopper(task)

    async def _deliver(self, room_code: str, delivery: Delivery, kind: str = "") -> None:
        if kind == "deleted":
            delivery.push(Snapshot())
            return
        try:
            delivery.push(await self.fetch(room_code))
        except TransportUnavailable:
            logger.warning("re-read of room %s failed", room_code, exc_info=True)

    async def _follow(self, room_code: str, delivery: Delivery) -> None:
        while True:
            await self._deliver(room_code, delivery)
            try:
                async for kind in self.feed.listen(room_code):
                    await self._deliver(room_code, delivery, kind)
            except (OSError, RedisError):
                logger.warning("change feed for room %s dropped; resubscribing", room_code, exc_info=True)
            await asyncio.sleep(self.reconnect_delay)
