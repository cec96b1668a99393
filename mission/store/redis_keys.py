# mission/store/redis_keys.py
from __future__ import annotations

from dataclasses import dataclass

# Registry hash: room_code -> RoomSummary JSON
ROOMS_KEY = "imf:rooms"


@dataclass(frozen=True)
class RK:
    """
    Redis Key builder for room-scoped keys.
    """
    room_code: str

    # ---- Core ----
    def room(self) -> str:
        return f"imf:room:{self.room_code}"  # HASH field -> JSON value

    def teams(self) -> str:
        return f"imf:room:{self.room_code}:teams"  # HASH team_id -> TeamStore JSON

    # ---- Realtime ----
    def events(self) -> str:
        return f"imf:room:{self.room_code}:events"  # PUBSUB channel

    # ---- Convenience: all keys to TTL-refresh ----
    def all_room_keys(self) -> list[str]:
        """
        Returns all keys that should share the same TTL policy.
        """
        return [self.room(), self.teams()]
