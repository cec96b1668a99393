import pytest

from mission.domain.lifecycle.handlers import (
    create_room,
    end_room_cmd,
    handle_join_request,
    handle_snapshot,
    handle_update_team,
    start_room_cmd,
)
from mission.store.memory_repo import MemoryRepo
from mission.transport.dispatcher import dispatch_message
from mission.transport.protocols import InJoinRequest, InSnapshot, InUpdateTeam


class FakeApp:
    def __init__(self, repo):
        self.state = type("State", (), {"repo": repo})()


async def _room(repo, teams=2):
    return await create_room(repo, org_name="IMF", total_teams=teams, duration_minutes=30, now=42)


@pytest.mark.asyncio
async def test_create_room_seeds_teams_and_registry():
    repo = MemoryRepo()
    room = await _room(repo, teams=3)

    assert len(room.room_code) == 6
    assert room.room_code.isalnum()
    assert room.is_started is False
    assert room.duration_minutes == 30

    teams = await repo.get_teams(room.room_code)
    assert sorted(teams) == [1, 2, 3]
    assert teams[3].name == "3조"

    summaries = await repo.list_room_summaries()
    assert [s.room_code for s in summaries] == [room.room_code]
    assert summaries[0].created_at == 42


@pytest.mark.asyncio
async def test_start_and_end_commands():
    repo = MemoryRepo()
    room = await _room(repo)

    started = await start_room_cmd(repo, room.room_code, now=1000)
    assert started.start_time == 1000
    again = await start_room_cmd(repo, room.room_code, now=5000)
    assert again.start_time == 1000

    ended = await end_room_cmd(repo, room.room_code)
    assert ended.is_ended is True
    assert (await repo.list_room_summaries())[0].is_ended is True

    assert await start_room_cmd(repo, "NOPE00") is None
    assert await end_room_cmd(repo, "NOPE00") is None


@pytest.mark.asyncio
async def test_join_request_echoes_full_state_to_room():
    repo = MemoryRepo()
    room = await _room(repo)
    app = FakeApp(repo)

    msg = InJoinRequest.model_validate({"type": "JOIN_REQUEST", "payload": {"teamId": 1, "name": "Alice"}})
    to_sender, to_room = await handle_join_request(app=app, room_code=room.room_code, pid="p1", msg=msg)

    assert to_sender == []
    assert len(to_room) == 1
    snap = to_room[0]
    assert snap.type == "SYNC_FULL"
    assert snap.room["roomCode"] == room.room_code
    assert snap.teams["1"]["members"] == ["Alice"]

    # same name again does not duplicate
    await handle_join_request(app=app, room_code=room.room_code, pid="p1", msg=msg)
    assert (await repo.get_team(room.room_code, 1)).members == ["Alice"]


@pytest.mark.asyncio
async def test_join_request_errors_go_to_sender_only():
    repo = MemoryRepo()
    room = await _room(repo)
    app = FakeApp(repo)

    bad_team = InJoinRequest.model_validate({"type": "JOIN_REQUEST", "payload": {"teamId": 7, "name": "Bob"}})
    to_sender, to_room = await handle_join_request(app=app, room_code=room.room_code, pid="p1", msg=bad_team)
    assert to_room == []
    assert to_sender[0].code == "TEAM_NOT_FOUND"

    to_sender, to_room = await handle_join_request(app=app, room_code="NOPE00", pid="p1", msg=bad_team)
    assert to_room == []
    assert to_sender[0].code == "ROOM_NOT_FOUND"


@pytest.mark.asyncio
async def test_update_team_is_reconciled_against_stored_progress():
    repo = MemoryRepo()
    room = await _room(repo)
    app = FakeApp(repo)
    code = room.room_code

    first = InUpdateTeam.model_validate(
        {
            "type": "UPDATE_TEAM",
            "payload": {
                "teamId": 1,
                "updates": {
                    "completedLocations": ["blue_house"],
                    "unlockedLocations": ["blue_house", "san_francisco"],
                    "completionTimes": {"blue_house": 100},
                },
            },
        }
    )
    await handle_update_team(app=app, room_code=code, pid="p1", msg=first)

    # a stale device rewrites the lists without blue_house
    stale = InUpdateTeam.model_validate(
        {
            "type": "UPDATE_TEAM",
            "payload": {"teamId": 1, "updates": {"completedLocations": [], "hintCount": 1}},
        }
    )
    to_sender, to_room = await handle_update_team(app=app, room_code=code, pid="p2", msg=stale)

    assert to_sender == []
    team = to_room[0].teams["1"]
    assert team["completedLocations"] == ["blue_house"]
    assert team["completionTimes"] == {"blue_house": 100}
    assert team["hintCount"] == 1


@pytest.mark.asyncio
async def test_snapshot_goes_to_sender():
    repo = MemoryRepo()
    room = await _room(repo)
    app = FakeApp(repo)

    to_sender, to_room = await handle_snapshot(app=app, room_code=room.room_code, pid="p1", msg=InSnapshot())
    assert to_room == []
    assert to_sender[0].type == "SYNC_FULL"
    assert sorted(to_sender[0].teams) == ["1", "2"]

    to_sender, _ = await handle_snapshot(app=app, room_code="NOPE00", pid="p1", msg=InSnapshot())
    assert to_sender[0].code == "ROOM_NOT_FOUND"


@pytest.mark.asyncio
async def test_dispatcher_rejects_bad_messages():
    app = FakeApp(MemoryRepo())

    to_sender, to_room = await dispatch_message(app=app, room_code="ABC123", pid="p1", raw={"type": "NOPE"})
    assert to_room == []
    assert to_sender[0]["type"] == "ERROR"
    assert to_sender[0]["code"] == "BAD_MESSAGE"

    to_sender, _ = await dispatch_message(
        app=app,
        room_code="ABC123",
        pid="p1",
        raw={"type": "JOIN_REQUEST", "payload": {"teamId": 1, "name": ""}},
    )
    assert to_sender[0]["code"] == "BAD_MESSAGE"


@pytest.mark.asyncio
async def test_dispatcher_routes_join_request():
    repo = MemoryRepo()
    room = await _room(repo)
    app = FakeApp(repo)

    to_sender, to_room = await dispatch_message(
        app=app,
        room_code=room.room_code,
        pid="p1",
        raw={"type": "JOIN_REQUEST", "payload": {"teamId": 2, "name": "Bob"}},
    )
    assert to_sender == []
    assert to_room[0]["type"] == "SYNC_FULL"
    assert to_room[0]["teams"]["2"]["members"] == ["Bob"]
