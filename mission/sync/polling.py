# mission/sync/polling.py
from __future__ import annotations

import logging
from typing import Optional

from mission.store.base import StateStore
from mission.sync.base import Delivery, OnRoom, OnTeams, Unsubscribe, TransportUnavailable
from mission.sync.notify import ChangeNotifier
from mission.sync.store_transport import StoreTransport

logger = logging.getLogger(__name__)


class PollingTransport(StoreTransport):
    """
    Re-reads the whole room every `interval` seconds (or right after a local
    write through the same notifier) and delivers only what changed.
    Worst-case propagation latency is one interval.
    """

    def __init__(
        self,
        repo: StateStore,
        notifier: Optional[ChangeNotifier] = None,
        interval: float = 1.0,
    ) -> None:
        super().__init__(repo, notifier)
        self.interval = interval

    def subscribe(self, room_code: str, on_room: OnRoom, on_teams: OnTeams) -> Unsubscribe:
        self.room_code = room_code
        task = self._spawn(self._poll(room_code, Delivery(on_room, on_teams)))
        return self._stopper(task)

    async def _poll(self, room_code: str, delivery: Delivery) -> None:
        while True:
            try:
                delivery.push(await self.fetch(room_code))
            except TransportUnavailable:
                # keep the last delivered snapshot; try again next tick
                logger.warning("poll of room %s failed", room_code, exc_info=True)
            await self.notifier.wait(room_code, self.interval)
