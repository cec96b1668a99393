# mission/sync/host.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from mission.domain.common.types import ActionType
from mission.store.base import StateStore
from mission.store.models import RoomStore, TeamStore
from mission.sync.realtime import RealtimeTransport
from mission.transport.ws import broadcast_sync, close_room_peers, host_identity
from mission.transport.ws_manager import WSManager

logger = logging.getLogger(__name__)


class HostTransport(RealtimeTransport):
    """
    The admin side of the peer-push strategy, running in the relay process.
    It writes the authoritative state straight to the store and then pushes
    SYNC_FULL to every connected peer, so admin actions reach clients the
    same way their own actions are echoed back.
    """

    def __init__(self, repo: StateStore, wsman: WSManager, **kwargs: Any) -> None:
        super().__init__(repo, **kwargs)
        self.wsman = wsman

    @staticmethod
    def identity(room_code: str) -> str:
        return host_identity(room_code)

    async def push(self, room_code: str) -> int:
        """Send the stored state to every peer of the room."""
        sent = await broadcast_sync(self.repo, self.wsman, room_code)
        logger.debug("%s pushed state to %d peers", self.identity(room_code), sent)
        return sent

    async def publish(self, room_code: str, room: RoomStore, teams: Optional[Dict[int, TeamStore]] = None) -> None:
        await super().publish(room_code, room, teams)
        await self.push(room_code)

    async def send_action(self, action_type: ActionType, payload: Dict[str, Any]) -> bool:
        ok = await super().send_action(action_type, payload)
        if ok and self.room_code is not None:
            await self.push(self.room_code)
        return ok

    async def announce_deleted(self, room_code: str) -> None:
        await close_room_peers(self.wsman, room_code)
