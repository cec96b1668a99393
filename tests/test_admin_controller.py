import asyncio

import pytest

from mission.client.admin import AdminController
from mission.domain.puzzles.catalog import BLUE_HOUSE, SAN_FRANCISCO
from mission.store.memory_repo import MemoryRepo
from mission.store.models import RoomSummary
from mission.sync import PollingTransport

T0 = 1_700_000_000_000


async def _until(pred, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not pred():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def _admin(repo, now=T0):
    return AdminController(repo, PollingTransport(repo, interval=0.01), clock=lambda: now)


@pytest.mark.asyncio
async def test_create_room_enters_dashboard():
    repo = MemoryRepo()
    admin = _admin(repo)

    assert await admin.create_room("  ", 2) is None
    assert admin.state.signal == "denied"

    room = await admin.create_room("IMF", 3)
    assert room.duration_minutes == 60
    assert admin.state.view == "DASHBOARD"
    assert admin.state.room.room_code == room.room_code
    assert sorted(admin.state.teams) == [1, 2, 3]
    assert admin.clock_text() == "--:--"
    assert admin.urgent() is False

    rooms = await admin.list_rooms()
    assert [r.room_code for r in rooms] == [room.room_code]
    assert rooms[0].created_at == T0

    await admin.close()


@pytest.mark.asyncio
async def test_enter_unknown_room():
    admin = _admin(MemoryRepo())
    assert await admin.enter("nope00") is False
    assert admin.state.signal == "not_found"
    assert admin.state.view == "LOBBY"
    await admin.close()


@pytest.mark.asyncio
async def test_start_and_end_game():
    repo = MemoryRepo()
    admin = _admin(repo)
    room = await admin.create_room("IMF", 2, 30)

    started = await admin.start_game()
    assert started.is_started is True
    assert started.start_time == T0
    assert (await repo.get_room(room.room_code)).start_time == T0
    assert admin.clock_text() == "30:00"

    # a second start keeps the original start time
    again = await admin.start_game()
    assert again.start_time == T0

    ended = await admin.end_game()
    assert ended.is_ended is True
    summary = (await admin.list_rooms())[0]
    assert summary.is_ended is True

    await admin.close()


@pytest.mark.asyncio
async def test_grid_follows_team_progress():
    repo = MemoryRepo()
    admin = _admin(repo)
    room = await admin.create_room("IMF", 2)
    code = room.room_code

    await repo.put_team(
        code,
        2,
        {
            "members": ["Bob", "Cho"],
            "completedLocations": [BLUE_HOUSE],
            "unlockedLocations": [BLUE_HOUSE, SAN_FRANCISCO],
            "completionTimes": {BLUE_HOUSE: T0},
            "hintCount": 1,
        },
    )
    await _until(lambda: admin.member_count() == 2)

    grid = admin.grid()
    assert [g.team_id for g in grid] == [1, 2]
    bob = grid[1]
    assert bob.location_state(BLUE_HOUSE) == "completed"
    assert bob.location_state(SAN_FRANCISCO) == "active"
    assert bob.location_state("france") == "locked"
    assert bob.hint_count == 1
    assert grid[0].location_state(BLUE_HOUSE) == "active"

    await admin.close()


@pytest.mark.asyncio
async def test_delete_room_and_external_deletion():
    repo = MemoryRepo()
    admin = _admin(repo)
    first = await admin.create_room("A", 1)
    await admin.delete_room(first.room_code)
    assert admin.state.view == "LOBBY"
    assert admin.state.room is None
    assert await repo.get_room(first.room_code) is None
    assert admin.state.rooms == []

    second = await admin.create_room("B", 1)
    await repo.delete_room(second.room_code)
    await _until(lambda: admin.state.signal == "room_gone")
    assert admin.state.view == "LOBBY"

    await admin.close()


@pytest.mark.asyncio
async def test_lobby_follows_the_registry():
    repo = MemoryRepo()
    admin = AdminController(repo, PollingTransport(repo, interval=0.01), clock=lambda: T0, poll_interval=0.01)
    seen = []

    admin.follow_rooms(seen.append)
    await _until(lambda: len(seen) == 1)
    assert seen[0] == []
    assert admin.following_rooms

    await repo.put_room_summary(RoomSummary(room_code="ABC123", org_name="IMF", created_at=T0))
    await _until(lambda: len(seen) == 2)
    assert [r.room_code for r in admin.state.rooms] == ["ABC123"]

    await repo.delete_room_summary("ABC123")
    await _until(lambda: len(seen) == 3)
    assert seen[-1] == []

    # the dashboard watches one room, not the registry
    await admin.create_room("IMF", 1)
    assert admin.following_rooms is False

    admin.follow_rooms()
    admin.stop_following_rooms()
    assert admin.following_rooms is False

    await admin.close()
