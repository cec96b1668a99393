from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from mission.domain.progress.rules import apply_partial
from mission.store.base import sort_summaries
from mission.store.models import RoomStore, RoomSummary, TeamStore
from mission.store.redis_keys import ROOMS_KEY, RK

logger = logging.getLogger(__name__)

_MAX_WATCH_RETRIES = 8


class RedisRepo:
    def __init__(self, r: Redis, room_ttl_sec: int = 60 * 60 * 24, notify: bool = True):
        self.r = r
        self.room_ttl_sec = room_ttl_sec
        # publish a change notice after every write (realtime subscribers)
        self.notify = notify

    def _dec(self, x):
        """Decode redis bytes -> str; pass through str/int/None safely."""
        if x is None:
            return None
        if isinstance(x, bytes):
            return x.decode("utf-8")
        return x

    def _dec_map(self, d: dict) -> dict:
        return {self._dec(k): self._dec(v) for k, v in d.items()}

    # ----------------------------
    # Helpers
    # ----------------------------
    async def refresh_room_ttl(self, room_code: str) -> None:
        rk = RK(room_code)
        pipe = self.r.pipeline()
        for k in rk.all_room_keys():
            pipe.expire(k, self.room_ttl_sec)
        await pipe.execute()

    async def room_exists(self, room_code: str) -> bool:
        return bool(await self.r.exists(RK(room_code).room()))

    async def _changed(self, room_code: str, kind: str) -> None:
        if not self.notify:
            return
        try:
            await self.r.publish(RK(room_code).events(), kind)
        except RedisError:
            # write already landed; only the notice is lost
            logger.warning("change notice for room %s failed", room_code, exc_info=True)

    # ----------------------------
    # Room
    # ----------------------------
    async def get_room(self, room_code: str) -> Optional[RoomStore]:
        data = await self.r.hgetall(RK(room_code).room())
        if not data:
            return None
        norm = self._dec_map(data)
        return RoomStore.model_validate({k: json.loads(v) for k, v in norm.items()})

    async def put_room(self, room: RoomStore) -> None:
        """Full upsert; the hash is replaced in one transaction."""
        rk = RK(room.room_code)
        mapping = {k: json.dumps(v) for k, v in room.wire().items()}
        pipe = self.r.pipeline(transaction=True)
        pipe.delete(rk.room())
        pipe.hset(rk.room(), mapping=mapping)
        for k in rk.all_room_keys():
            pipe.expire(k, self.room_ttl_sec)
        await pipe.execute()
        await self._changed(room.room_code, "room")

    # ----------------------------
    # Teams
    # ----------------------------
    async def get_teams(self, room_code: str) -> Dict[int, TeamStore]:
        data = await self.r.hgetall(RK(room_code).teams())
        teams: Dict[int, TeamStore] = {}
        for k, raw in data.items():
            teams[int(self._dec(k))] = TeamStore.model_validate_json(self._dec(raw))
        return dict(sorted(teams.items()))

    async def get_team(self, room_code: str, team_id: int) -> Optional[TeamStore]:
        raw = await self.r.hget(RK(room_code).teams(), str(team_id))
        if not raw:
            return None
        return TeamStore.model_validate_json(self._dec(raw))

    async def put_teams(self, room_code: str, teams: Dict[int, TeamStore]) -> None:
        rk = RK(room_code)
        pipe = self.r.pipeline(transaction=True)
        pipe.delete(rk.teams())
        if teams:
            pipe.hset(rk.teams(), mapping={str(tid): t.wire_json() for tid, t in teams.items()})
        pipe.expire(rk.teams(), self.room_ttl_sec)
        await pipe.execute()
        await self._changed(room_code, "teams")

    async def put_team(self, room_code: str, team_id: int, partial: Dict[str, Any]) -> Optional[TeamStore]:
        """Per-team partial merge ({...team, ...partial}); None if the team does not exist."""
        return await self.update_team(room_code, team_id, lambda _team: partial)

    async def update_team(
        self,
        room_code: str,
        team_id: int,
        fn: Callable[[TeamStore], Dict[str, Any]],
    ) -> Optional[TeamStore]:
        """
        Read-modify-write of one team under WATCH: `fn` maps the stored team to a
        partial update, which is merged and written only if nobody else wrote the
        teams hash in between (otherwise retried against the fresh value).
        """
        rk = RK(room_code)
        key = rk.teams()
        field = str(team_id)
        async with self.r.pipeline(transaction=True) as pipe:
            for _ in range(_MAX_WATCH_RETRIES):
                try:
                    await pipe.watch(key)
                    raw = await pipe.hget(key, field)
                    if not raw:
                        await pipe.unwatch()
                        return None
                    current = TeamStore.model_validate_json(self._dec(raw))
                    merged = apply_partial(current, fn(current))
                    pipe.multi()
                    pipe.hset(key, field, merged.wire_json())
                    await pipe.execute()
                    break
                except WatchError:
                    continue
            else:
                logger.warning("put_team gave up after retries room=%s team=%s", room_code, team_id)
                return None
        await self._changed(room_code, "teams")
        return merged

    # ----------------------------
    # Registry
    # ----------------------------
    async def list_room_summaries(self) -> List[RoomSummary]:
        data = await self.r.hgetall(ROOMS_KEY)
        rooms = [RoomSummary.model_validate_json(self._dec(v)) for v in data.values()]
        return sort_summaries(rooms)

    async def put_room_summary(self, summary: RoomSummary) -> None:
        pipe = self.r.pipeline()
        pipe.hset(ROOMS_KEY, summary.room_code, summary.wire_json())
        pipe.expire(ROOMS_KEY, self.room_ttl_sec)
        await pipe.execute()

    async def delete_room_summary(self, room_code: str) -> None:
        await self.r.hdel(ROOMS_KEY, room_code)

    async def delete_room(self, room_code: str) -> None:
        """Room, teams and registry entry go in one MULTI so readers never see half a room."""
        rk = RK(room_code)
        pipe = self.r.pipeline(transaction=True)
        pipe.delete(rk.room(), rk.teams())
        pipe.hdel(ROOMS_KEY, room_code)
        await pipe.execute()
        await self._changed(room_code, "deleted")

    # ----------------------------
    # Change feed (pub/sub)
    # ----------------------------
    async def listen(self, room_code: str) -> AsyncIterator[str]:
        pubsub = self.r.pubsub()
        await pubsub.subscribe(RK(room_code).events())
        try:
            async for msg in pubsub.listen():
                if msg.get("type") != "message":
                    continue
                yield self._dec(msg.get("data")) or ""
        finally:
            await pubsub.unsubscribe()
            await pubsub.aclose()
