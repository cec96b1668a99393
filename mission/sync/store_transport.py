# mission/sync/store_transport.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from pydantic import ValidationError
from redis.exceptions import RedisError

from mission.domain.common.types import ActionType
from mission.domain.lifecycle.handlers import apply_join, apply_team_update
from mission.store.base import StateStore
from mission.store.models import RoomStore, TeamStore
from mission.sync.base import Snapshot, Transport, TransportUnavailable
from mission.sync.notify import ChangeNotifier
from mission.transport.protocols import JoinPayload, UpdateTeamPayload

logger = logging.getLogger(__name__)


async def apply_action(
    repo: StateStore,
    room_code: str,
    action_type: ActionType,
    payload: Dict[str, Any],
) -> Optional[TeamStore]:
    """
    Store-backed strategies have no host to send actions to, so an action
    falls through to the same per-team merge the host would run.
    """
    if action_type == "JOIN_REQUEST":
        join = JoinPayload.model_validate(payload)
        return await apply_join(repo, room_code, join.team_id, join.name)
    if action_type == "UPDATE_TEAM":
        upd = UpdateTeamPayload.model_validate(payload)
        return await apply_team_update(repo, room_code, upd.team_id, upd.updates)
    return None


class StoreTransport(Transport):
    """Shared read/write half of the strategies that talk to the store directly."""

    def __init__(self, repo: StateStore, notifier: Optional[ChangeNotifier] = None) -> None:
        self.repo = repo
        self.notifier = notifier or ChangeNotifier()
        self.room_code: Optional[str] = None
        self._tasks: Set[asyncio.Task] = set()

    async def publish(self, room_code: str, room: RoomStore, teams: Optional[Dict[int, TeamStore]] = None) -> None:
        await self.repo.put_room(room)
        if teams is not None:
            await self.repo.put_teams(room_code, teams)
        self.notifier.notify(room_code)

    async def send_action(self, action_type: ActionType, payload: Dict[str, Any]) -> bool:
        if self.room_code is None:
            logger.warning("%s dropped: no room bound", action_type)
            return False
        try:
            await apply_action(self.repo, self.room_code, action_type, payload)
        except ValidationError:
            logger.warning("%s dropped: bad payload %r", action_type, payload, exc_info=True)
            return False
        except (OSError, RedisError):
            logger.warning("%s dropped: store unreachable", action_type, exc_info=True)
            return False
        self.notifier.notify(self.room_code)
        return True

    async def fetch(self, room_code: str) -> Snapshot:
        self.room_code = room_code
        try:
            room = await self.repo.get_room(room_code)
            teams = await self.repo.get_teams(room_code) if room is not None else {}
        except (OSError, RedisError) as e:
            raise TransportUnavailable(str(e)) from e
        return Snapshot(room=room, teams=teams)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _stopper(self, task: asyncio.Task):
        def unsubscribe() -> None:
            task.cancel()
        return unsubscribe

    async def close(self) -> None:
        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
