import asyncio

import pytest

from mission.domain.progress.rules import new_room, new_teams
from mission.store.memory_repo import MemoryRepo
from mission.store.models import RoomSummary


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


async def _seed(repo, code="ABC123", teams=2):
    await repo.put_room(new_room(code, "IMF", teams))
    await repo.put_teams(code, new_teams(teams))


@pytest.mark.asyncio
async def test_missing_room_reads_as_none():
    repo = MemoryRepo()
    assert await repo.get_room("NOPE00") is None
    assert await repo.get_teams("NOPE00") == {}
    assert await repo.room_exists("NOPE00") is False


@pytest.mark.asyncio
async def test_put_team_is_field_level_whole_field_replace():
    repo = MemoryRepo()
    await _seed(repo)
    await repo.put_team("ABC123", 1, {"solvedSubPuzzles": ["codeA-1", "codeA-2"]})
    team = await repo.put_team("ABC123", 1, {"solvedSubPuzzles": ["codeB-1"], "hintCount": 1})

    assert team.solved_sub_puzzles == ["codeB-1"]
    stored = (await repo.get_teams("ABC123"))[1]
    assert stored.solved_sub_puzzles == ["codeB-1"]
    assert stored.hint_count == 1
    assert stored.name == "1조"


@pytest.mark.asyncio
async def test_updates_to_different_teams_do_not_collide():
    repo = MemoryRepo()
    await _seed(repo)
    await asyncio.gather(
        repo.put_team("ABC123", 1, {"members": ["Alice"]}),
        repo.put_team("ABC123", 2, {"members": ["Bob"]}),
    )
    teams = await repo.get_teams("ABC123")
    assert teams[1].members == ["Alice"]
    assert teams[2].members == ["Bob"]


@pytest.mark.asyncio
async def test_put_team_on_unknown_team_returns_none():
    repo = MemoryRepo()
    await _seed(repo)
    assert await repo.put_team("ABC123", 9, {"hintCount": 1}) is None


@pytest.mark.asyncio
async def test_update_team_sees_current_value():
    repo = MemoryRepo()
    await _seed(repo)
    for _ in range(3):
        await repo.update_team("ABC123", 1, lambda t: {"hintCount": t.hint_count + 1})
    assert (await repo.get_team("ABC123", 1)).hint_count == 3


@pytest.mark.asyncio
async def test_delete_room_removes_everything():
    repo = MemoryRepo()
    await _seed(repo)
    await repo.put_room_summary(RoomSummary(room_code="ABC123", org_name="IMF", created_at=1))

    await repo.delete_room("ABC123")

    assert await repo.get_room("ABC123") is None
    assert await repo.get_teams("ABC123") == {}
    assert await repo.list_room_summaries() == []


@pytest.mark.asyncio
async def test_rooms_expire_after_ttl():
    clock = FakeClock()
    repo = MemoryRepo(room_ttl_sec=10, clock=clock)
    await _seed(repo)
    await repo.put_room_summary(RoomSummary(room_code="ABC123", org_name="IMF"))

    clock.now = 9
    assert await repo.get_room("ABC123") is not None
    await repo.refresh_room_ttl("ABC123")

    clock.now = 15
    assert await repo.room_exists("ABC123") is True

    clock.now = 30
    assert await repo.get_room("ABC123") is None
    assert await repo.get_teams("ABC123") == {}
    assert await repo.list_room_summaries() == []


@pytest.mark.asyncio
async def test_registry_sorts_active_first_then_newest():
    repo = MemoryRepo()
    await repo.put_room_summary(RoomSummary(room_code="OLD", org_name="a", created_at=1))
    await repo.put_room_summary(RoomSummary(room_code="NEW", org_name="b", created_at=3))
    await repo.put_room_summary(RoomSummary(room_code="DONE", org_name="c", created_at=9, is_ended=True))
    await repo.put_room_summary(RoomSummary(room_code="MID", org_name="d", created_at=2))

    codes = [r.room_code for r in await repo.list_room_summaries()]
    assert codes == ["NEW", "MID", "OLD", "DONE"]

    await repo.delete_room_summary("MID")
    codes = [r.room_code for r in await repo.list_room_summaries()]
    assert codes == ["NEW", "OLD", "DONE"]


@pytest.mark.asyncio
async def test_listen_receives_change_notices():
    repo = MemoryRepo()
    await _seed(repo)
    got = []
    feed = repo.listen("ABC123")

    async def consume():
        async for kind in feed:
            got.append(kind)
            if kind == "deleted":
                return

    task = asyncio.create_task(consume())
    while repo.listener_count("ABC123") == 0:
        await asyncio.sleep(0)

    await repo.put_team("ABC123", 1, {"hintCount": 1})
    await repo.delete_room("ABC123")
    await asyncio.wait_for(task, 1)
    await feed.aclose()

    assert got == ["teams", "deleted"]
    assert repo.listener_count("ABC123") == 0
