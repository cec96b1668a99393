import asyncio

import pytest

from mission.client.admin import AdminController
from mission.client.controller import GameController
from mission.client.session import SessionStore
from mission.domain.puzzles.catalog import BLUE_HOUSE, FRANCE, INCHEON_AIRPORT, PUZZLES, SAN_FRANCISCO
from mission.store.memory_repo import MemoryRepo
from mission.sync import PollingTransport, TransportUnavailable

MIN = 60_000
T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


class OfflineTransport(PollingTransport):
    async def fetch(self, room_code):
        self.room_code = room_code
        raise TransportUnavailable("host unreachable")


async def _until(pred, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not pred():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


async def _confirmed(player, pred):
    # background writes landed and a poll after them was applied
    await player.ctx.drain()
    await _until(lambda: player.state.my_team is not None and pred(player.state.my_team))


def _player(repo, clock, session=None):
    return GameController(PollingTransport(repo, interval=0.01), session=session, clock=clock)


async def _setup(teams=2, duration=60):
    repo = MemoryRepo()
    clock = FakeClock()
    admin = AdminController(repo, PollingTransport(repo, interval=0.01), clock=clock)
    room = await admin.create_room("IMF", teams, duration)
    return repo, clock, admin, room


async def _joined(repo, clock, code, name="Alice", team_id=1, session=None):
    player = _player(repo, clock, session)
    assert player.select_user()
    assert await player.connect(code)
    assert player.join(name, team_id)
    await _confirmed(player, lambda t: name in t.members)
    return player


async def _started(admin, *players):
    await admin.start_game()
    for p in players:
        await _until(lambda: p.state.stage == "PUZZLE_VIEW")


@pytest.mark.asyncio
async def test_full_mission_to_success_and_leaderboard():
    repo, clock, admin, room = await _setup()
    code = room.room_code

    player = _player(repo, clock)
    assert player.select_user()
    assert await player.connect(code.lower())
    assert player.state.room.room_code == code
    assert player.join("Alice", 1)
    assert player.state.stage == "WAITING_ROOM"
    await _until(lambda: admin.member_count() == 1)

    await _started(admin, player)
    assert player.state.current_location_id == BLUE_HOUSE

    # blue house: one whole-location answer
    assert player.submit_answer("도쿄") is False
    assert player.state.signal == "denied"
    clock.now = T0 + 5 * MIN
    assert player.submit_answer(" 샌프란 시스코 ")
    assert player.state.stage == "MAP"
    await _confirmed(player, lambda t: SAN_FRANCISCO in t.unlocked_locations)

    # san francisco: three codes, then the final answer; one hint on the way
    assert player.select_location(SAN_FRANCISCO)
    hint = await player.request_hint("help")
    assert hint == PUZZLES[SAN_FRANCISCO].hint_context
    assert player.hints_left() == 2
    assert player.submit_sub_puzzle("codeA-1", "1004")
    assert player.submit_sub_puzzle("codeA-2", "0000") is False
    assert player.submit_sub_puzzle("codeA-2", "1782")
    assert player.state.final_stage_mode is False
    assert player.submit_sub_puzzle("codeA-3", "1777")
    assert player.state.final_stage_mode is True
    clock.now = T0 + 15 * MIN
    assert player.submit_final_stage("프랑스")
    assert player.state.stage == "MAP"
    await _confirmed(player, lambda t: FRANCE in t.unlocked_locations)

    # france
    assert player.select_location(FRANCE)
    assert player.submit_sub_puzzle("codeB-1", "I Can")
    assert player.submit_sub_puzzle("codeB-2", "unlock")
    assert player.submit_sub_puzzle("codeB-3", "the code")
    clock.now = T0 + 30 * MIN
    assert player.submit_final_stage("인천 공항")
    await _confirmed(player, lambda t: INCHEON_AIRPORT in t.unlocked_locations)

    # incheon: the last code completes the mission
    assert player.select_location(INCHEON_AIRPORT)
    assert player.submit_sub_puzzle("codeC-1", "3031")
    assert player.submit_sub_puzzle("codeC-2", "2010")
    clock.now = T0 + 40 * MIN
    assert player.submit_sub_puzzle("codeC-3", "0219")
    assert player.state.stage == "SUCCESS"
    await _confirmed(player, lambda t: t.finish_time == T0 + 40 * MIN)

    await _until(lambda: admin.grid()[0].finished)
    rows = admin.leaderboard()
    assert [r.team_id for r in rows] == [1, 2]
    first = rows[0]
    assert first.raw_time_ms == 40 * MIN
    assert first.penalty_ms == 5 * MIN
    assert first.final_time_ms == 45 * MIN
    assert [s.duration_ms for s in first.stages] == [5 * MIN, 10 * MIN, 15 * MIN, 10 * MIN]
    assert rows[1].final_time_ms is None

    await admin.end_game()
    assert admin.state.room.is_ended is True
    assert (await repo.list_room_summaries())[0].is_ended is True
    assert player.state.stage == "SUCCESS"

    await player.close()
    await admin.close()


@pytest.mark.asyncio
async def test_connect_failures():
    repo, clock, admin, room = await _setup()
    player = _player(repo, clock)
    player.select_user()

    assert await player.connect("ABC") is False
    assert player.state.signal == "denied"
    assert await player.connect("ZZZ999") is False
    assert player.state.signal == "not_found"
    player.clear_signal()
    assert player.state.signal == ""

    offline = GameController(OfflineTransport(repo), clock=clock)
    assert await offline.connect(room.room_code) is False
    assert offline.state.signal == "offline"

    assert await player.connect(room.room_code)
    assert player.join("", 1) is False
    assert player.join("Alice", 3) is False
    assert player.state.stage == "USER_JOIN"

    await player.close()
    await admin.close()


@pytest.mark.asyncio
async def test_join_link_connects_on_first_load():
    repo, clock, admin, room = await _setup()
    code = room.room_code

    player = _player(repo, clock)
    assert await player.open_link(f"https://mission.example/join?room={code.lower()}")
    assert player.state.stage == "USER_JOIN"
    assert player.state.room_code_input == code
    assert player.state.room.room_code == code
    assert player.ctx.subscribed is True
    assert player.join("Alice", 1)

    plain = _player(repo, clock)
    assert await plain.open_link("https://mission.example/") is False
    assert plain.state.stage == "LOGIN_SELECT"

    missing = _player(repo, clock)
    assert await missing.open_link("/?room=ZZZ999") is False
    assert missing.state.stage == "USER_JOIN"
    assert missing.state.signal == "not_found"

    for p in (player, plain, missing):
        await p.close()
    await admin.close()


@pytest.mark.asyncio
async def test_landing_navigation():
    repo, clock, admin, _room = await _setup()
    ctrl = _player(repo, clock)
    assert ctrl.select_admin()
    assert ctrl.admin_login(False) is False
    assert ctrl.admin_login(True)
    assert ctrl.state.stage == "ADMIN_DASHBOARD"
    assert ctrl.select_user() is False
    assert ctrl.back()
    assert ctrl.state.stage == "LOGIN_SELECT"
    await admin.close()


@pytest.mark.asyncio
async def test_hint_cap():
    repo, clock, admin, room = await _setup()
    player = await _joined(repo, clock, room.room_code)
    await _started(admin, player)

    for _ in range(3):
        assert await player.request_hint() is not None
    assert player.hints_left() == 0
    assert await player.request_hint() is None
    assert player.state.signal == "hint_limit"
    await _confirmed(player, lambda t: t.hint_count == 3)
    assert (await repo.get_team(room.room_code, 1)).hint_count == 3

    await player.close()
    await admin.close()


@pytest.mark.asyncio
async def test_teammate_completion_moves_everyone_on():
    repo, clock, admin, room = await _setup()
    alice = await _joined(repo, clock, room.room_code, "Alice", 1)
    bob = await _joined(repo, clock, room.room_code, "Bob", 1)
    await _started(admin, alice, bob)

    assert bob.submit_answer("샌프란시스코")
    await _confirmed(bob, lambda t: BLUE_HOUSE in t.completed_locations)

    await _until(lambda: alice.state.current_location_id == SAN_FRANCISCO)
    assert alice.state.stage == "PUZZLE_VIEW"
    assert alice.state.my_team.members == ["Alice", "Bob"]

    await alice.close()
    await bob.close()
    await admin.close()


@pytest.mark.asyncio
async def test_time_up_moves_players_to_failure():
    repo, clock, admin, room = await _setup(duration=60)
    player = await _joined(repo, clock, room.room_code)
    watcher = _player(repo, clock)
    await watcher.connect(room.room_code)
    await _started(admin, player)

    clock.now = T0 + 30 * MIN
    assert player.tick() == 30 * MIN
    assert player.clock_text() == "30:00"
    assert player.state.stage == "PUZZLE_VIEW"

    clock.now = T0 + 61 * MIN
    assert player.tick() == 0
    assert player.state.stage == "FAILURE"

    # not joined to a team: nothing to fail
    watcher.tick()
    assert watcher.state.stage == "LOGIN_SELECT"

    await player.close()
    await watcher.close()
    await admin.close()


@pytest.mark.asyncio
async def test_ancient_start_time_does_not_fail():
    repo, clock, admin, room = await _setup(duration=60)
    player = await _joined(repo, clock, room.room_code)
    await _started(admin, player)

    clock.now = T0 + 100 * 60 * MIN
    player.tick()
    assert player.state.stage == "PUZZLE_VIEW"

    await player.close()
    await admin.close()


@pytest.mark.asyncio
async def test_deleted_room_sends_players_home(tmp_path):
    repo, clock, admin, room = await _setup()
    session = SessionStore(tmp_path / "s.json")
    player = await _joined(repo, clock, room.room_code, session=session)
    assert session.load() is not None

    await admin.delete_room(room.room_code)
    assert admin.state.view == "LOBBY"

    await _until(lambda: player.state.signal == "room_gone")
    assert player.state.stage == "LOGIN_SELECT"
    assert player.state.room is None
    assert session.load() is None

    await player.close()
    await admin.close()


@pytest.mark.asyncio
async def test_restore_after_restart(tmp_path):
    repo, clock, admin, room = await _setup()
    path = tmp_path / "s.json"
    first = await _joined(repo, clock, room.room_code, session=SessionStore(path))
    await first.close()

    again = _player(repo, clock, session=SessionStore(path))
    assert await again.restore()
    assert again.state.stage == "WAITING_ROOM"
    assert again.state.my_name == "Alice"
    assert again.state.my_team_id == 1

    await _started(admin, again)
    assert again.state.current_location_id == BLUE_HOUSE
    assert await again.refresh()
    assert again.state.stage == "PUZZLE_VIEW"
    await again.close()

    # host down: the cached snapshot stands in
    offline = GameController(OfflineTransport(repo, interval=0.01), session=SessionStore(path), clock=clock)
    assert await offline.restore()
    assert offline.state.stage == "PUZZLE_VIEW"
    assert offline.state.room.is_started is True
    await offline.close()

    await admin.close()


@pytest.mark.asyncio
async def test_restore_for_a_vanished_room_starts_over(tmp_path):
    repo, clock, admin, room = await _setup()
    path = tmp_path / "s.json"
    first = await _joined(repo, clock, room.room_code, session=SessionStore(path))
    await first.close()
    await repo.delete_room(room.room_code)

    again = _player(repo, clock, session=SessionStore(path))
    assert await again.restore() is False
    assert again.state.stage == "LOGIN_SELECT"
    assert SessionStore(path).load() is None

    await again.close()
    await admin.close()


@pytest.mark.asyncio
async def test_return_to_menu_forgets_everything(tmp_path):
    repo, clock, admin, room = await _setup()
    session = SessionStore(tmp_path / "s.json")
    player = await _joined(repo, clock, room.room_code, session=session)

    player.return_to_menu()
    assert player.state.stage == "LOGIN_SELECT"
    assert player.state.my_team_id is None
    assert player.ctx.subscribed is False
    assert session.load() is None

    await player.close()
    await admin.close()
