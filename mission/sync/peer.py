# mission/sync/peer.py
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from mission.domain.common.types import ActionType
from mission.store.models import RoomStore, TeamStore
from mission.sync.base import Delivery, OnRoom, OnTeams, Snapshot, Transport, TransportUnavailable, Unsubscribe

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


class PeerTransport(Transport):
    """
    Client side of the peer-push strategy: one socket to the room's host at
    `{base_url}/ws/{room_code}`. Mutations go out as JOIN_REQUEST/UPDATE_TEAM
    actions and come back as SYNC_FULL, the sender included.

    When the host is unreachable the client keeps its last snapshot and
    retries in the background; every reconnect asks for a fresh SYNC_FULL.
    """

    def __init__(
        self,
        base_url: str = "ws://localhost:8000",
        open_timeout: float = 5.0,
        reconnect_delay: float = 1.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.open_timeout = open_timeout
        self.reconnect_delay = reconnect_delay
        self.room_code: Optional[str] = None
        self.last: Snapshot = Snapshot()
        self._ws: Any = None
        self._tasks: Set[asyncio.Task] = set()

    def url(self, room_code: str) -> str:
        return f"{self.base_url}/ws/{room_code}"

    @property
    def connected(self) -> bool:
        return self._ws is not None

    # ----------------------------
    # Incoming
    # ----------------------------
    def _handle(self, raw: Any, delivery: Optional[Delivery]) -> bool:
        """Apply one host message; True when the room was closed for good."""
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("unparseable message from host: %r", raw)
            return False

        t = data.get("type") if isinstance(data, dict) else None
        if t == "SYNC_FULL":
            try:
                snap = Snapshot.from_wire(data.get("room"), data.get("teams"))
            except ValidationError:
                logger.warning("malformed SYNC_FULL dropped", exc_info=True)
                return False
            self.last = snap
            if delivery is not None:
                delivery.push(snap)
            return False

        if t == "ROOM_CLOSED" or (t == "ERROR" and data.get("code") == "ROOM_NOT_FOUND"):
            self.last = Snapshot()
            if delivery is not None:
                delivery.push(self.last)
            return t == "ROOM_CLOSED"

        if t == "ERROR":
            logger.warning("host rejected action: %s %s", data.get("code"), data.get("message"))
        return False

    # ----------------------------
    # Transport contract
    # ----------------------------
    async def publish(self, room_code: str, room: RoomStore, teams: Optional[Dict[int, TeamStore]] = None) -> None:
        # only the host owns room-level state
        logger.warning("peer cannot publish room %s; ignored", room_code)

    async def fetch(self, room_code: str) -> Snapshot:
        self.room_code = room_code
        try:
            async with websockets.connect(self.url(room_code), open_timeout=self.open_timeout) as ws:
                raw = await asyncio.wait_for(ws.recv(), self.open_timeout)
        except _NETWORK_ERRORS as e:
            raise TransportUnavailable(f"host for room {room_code} unreachable: {e}") from e
        self._handle(raw, None)
        return self.last

    def subscribe(self, room_code: str, on_room: OnRoom, on_teams: OnTeams) -> Unsubscribe:
        self.room_code = room_code
        task = asyncio.create_task(self._run(room_code, Delivery(on_room, on_teams)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        def unsubscribe() -> None:
            task.cancel()
        return unsubscribe

    async def _run(self, room_code: str, delivery: Delivery) -> None:
        reconnect = False
        while True:
            try:
                async with websockets.connect(self.url(room_code), open_timeout=self.open_timeout) as ws:
                    self._ws = ws
                    if reconnect:
                        await ws.send(json.dumps({"type": "SNAPSHOT"}))
                    async for raw in ws:
                        if self._handle(raw, delivery):
                            return
            except _NETWORK_ERRORS:
                logger.warning("host for room %s unreachable; retrying", room_code, exc_info=True)
            finally:
                self._ws = None
            reconnect = True
            await asyncio.sleep(self.reconnect_delay)

    async def send_action(self, action_type: ActionType, payload: Dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None:
            logger.info("%s not sent: no host connection", action_type)
            return False
        try:
            await ws.send(json.dumps({"type": action_type, "payload": payload}))
        except (ConnectionClosed, OSError):
            logger.info("%s not sent: host connection dropped", action_type)
            return False
        return True

    async def close(self) -> None:
        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
