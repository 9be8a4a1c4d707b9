import asyncio

import pytest

from conftest import FailingSnippetSource, FakeSnippetSource, MemoryScoreStore, SNIPPETS, run
from models.entities import Guard, HighScore, MatchState


async def settle(rounds=5):
    """Let pending background tasks (cooldown, fetch) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def started(match):
    """Open a lobby and type the first correct character."""
    await match.start_lobby()
    match.handle_input("a")
    return match


def test_lobby_prepares_roster_and_first_snippet(make_match, source):
    match = make_match()
    run(match.start_lobby())

    assert match.state is MatchState.LOBBY
    assert len(match.players) == 50
    assert match.alive_bots_count() == 49
    assert match.local_player.health == 100
    assert not match.local_player.isBot
    assert match.snippet == SNIPPETS[0]
    assert source.requests == [[]]


def test_input_rejected_without_snippet(make_match):
    match = make_match()
    assert match.handle_input("a") is None
    assert match.state is MatchState.LOBBY


def test_first_keystroke_starts_match(make_match):
    async def scenario():
        match = await started(make_match())
        assert match.state is MatchState.PLAYING
        assert match.start_time is not None
        assert any(e == {"type": "sound", "name": "type"} for e in match.drain_events())

    run(scenario())


def test_tick_does_nothing_in_lobby(make_match):
    match = make_match()
    run(match.start_lobby())
    match.tick()
    assert match.safe_zone.radius == 450


def test_exposure_eliminates_local_player(make_match, clock):
    async def scenario():
        match = await started(make_match())
        player = match.local_player
        player.x, player.y = 0, 0
        player.health = 20

        for _ in range(11):
            match.tick()
        assert player.isAlive
        assert match.state is MatchState.PLAYING

        clock.advance(30)
        match.tick()
        assert not player.isAlive
        assert player.health == 0
        assert match.state is MatchState.GAMEOVER
        assert match.stats.rank == match.alive_bots_count() + 1
        assert match.stats.totalPlayers == 50
        assert match.stats.timeSurvived == 30

        events = match.drain_events()
        assert {
            "type": "elimination",
            "playerId": player.id,
            "x": 0,
            "y": 0,
            "isLocal": True,
        } in events
        return match

    match = run(scenario())
    # Dead stays dead and the world is frozen
    radius = match.safe_zone.radius
    match.tick()
    assert match.safe_zone.radius == radius
    assert match.handle_input("ab") is None


def test_zone_shrinks_monotonically_to_floor(make_match):
    async def scenario():
        match = await started(make_match())
        radii = []
        for _ in range(700):
            match.tick()
            radii.append(match.safe_zone.radius)
        return match, radii

    match, radii = run(scenario())
    assert all(b <= a for a, b in zip(radii, radii[1:]))
    assert radii[-1] == 15
    assert match.state is MatchState.PLAYING
    assert 0 <= match.local_player.health <= 100


def test_strike_damages_spawns_guard_and_swaps_snippet(make_match, source):
    async def scenario():
        match = await started(make_match(strike_cooldown=0.01))
        result = match.handle_input("xyz")
        assert result.threshold
        assert match.local_player.health == 75
        guards = list(match.guards.values())
        assert len(guards) == 1
        assert guards[0].targetId == match.local_player_id
        assert guards[0].x in (0, 800)
        assert guards[0].speed == 3.0

        # Stunned: typing is ignored until the next snippet arrives
        assert match.handle_input("a") is None

        await asyncio.sleep(0.02)
        await settle()
        assert match.snippet == SNIPPETS[1]
        assert source.requests[-1] == ["snip-a"]
        assert match.handle_input("d") is not None
        return match

    match = run(scenario())
    assert "STRIKE DETECTED. Guard Inbound." in [entry.msg for entry in match.logs]


def test_completion_heals_and_requests_next_snippet(make_match, source):
    async def scenario():
        match = await started(make_match())
        match.local_player.health = 50
        result = match.handle_input("abc")
        assert result.completed
        assert match.local_player.health == 70
        assert match.snippet is None
        assert match.loading_snippet

        await settle()
        assert match.snippet == SNIPPETS[1]
        assert match.used_snippet_ids == ["snip-a"]

        match.handle_input(SNIPPETS[1].code)
        await settle()
        assert source.requests[-1] == ["snip-a", "snip-b"]
        assert match.snippet == SNIPPETS[2]

    run(scenario())


def test_heal_is_capped(make_match):
    async def scenario():
        match = await started(make_match())
        match.local_player.health = 95
        match.handle_input("abc")
        assert match.local_player.health == 100

    run(scenario())


def test_guard_captures_once(make_match):
    async def scenario():
        match = await started(make_match())
        player = match.local_player
        match.guards["guard-x"] = Guard(
            id="guard-x", x=player.x + 13, y=player.y, targetId=player.id, speed=3.0
        )
        match.tick()
        assert player.health == 75
        assert match.guards == {}
        match.tick()
        assert player.health == 75

    run(scenario())


def test_guard_capture_can_end_match(make_match):
    async def scenario():
        match = await started(make_match())
        player = match.local_player
        player.health = 20
        match.guards["guard-x"] = Guard(
            id="guard-x", x=player.x, y=player.y + 5, targetId=player.id, speed=3.0
        )
        match.tick()
        assert player.health == 0
        assert not player.isAlive
        assert match.state is MatchState.GAMEOVER

    run(scenario())


def test_guard_ignores_dead_target(make_match):
    async def scenario():
        match = await started(make_match())
        target = match.players["bot-3"]
        target.isAlive = False
        target.health = 0
        match.guards["guard-x"] = Guard(id="guard-x", x=0, y=0, targetId="bot-3", speed=3.0)
        match.tick()
        assert (match.guards["guard-x"].x, match.guards["guard-x"].y) == (0, 0)

    run(scenario())


def test_bot_falling_after_local_player_gets_spectator_line(make_match):
    async def scenario():
        match = await started(make_match())
        player = match.local_player
        player.x, player.y = 0, 0
        player.health = 1
        doomed = match.players["bot-0"]
        doomed.health = 1  # bots spawn in an exposed corner with FixedRandom

        match.tick()
        assert match.state is MatchState.GAMEOVER
        assert match.stats.rank == 50
        assert not doomed.isAlive
        assert match.spectator_chat == [f"Spectator: RIP {doomed.name}"]
        assert f"Process {doomed.name} killed." in [entry.msg for entry in match.logs]

    run(scenario())


def test_live_speed_and_accuracy(make_match, clock):
    async def scenario():
        match = await started(make_match())
        clock.advance(12)
        match.handle_input("ab")
        assert match.wpm == 2
        assert match.accuracy == 100

        match.handle_input("abx")
        assert match.accuracy == 67
        assert match.local_player.wpm == match.wpm
        assert match.local_player.accuracy == 67

    run(scenario())


@pytest.mark.parametrize("stored_wpm, should_save", [(3, True), (4, False)])
def test_best_score_saved_only_when_strictly_better(make_match, clock, stored_wpm, should_save):
    store = MemoryScoreStore(HighScore(wpm=stored_wpm, accuracy=90))

    async def scenario():
        match = await started(make_match(score_store=store))
        clock.advance(6)
        match.handle_input("ab")
        player = match.local_player
        player.x, player.y = 0, 0
        player.health = 1
        match.tick()
        return match

    match = run(scenario())
    assert match.stats.wpm == 4
    assert bool(store.saved) is should_save
    assert match.high_score.wpm == (4 if should_save else stored_wpm)


def test_restart_resets_world(make_match, source):
    async def scenario():
        match = await started(make_match())
        match.handle_input("xyz")
        for _ in range(20):
            match.tick()
        await settle()
        player = match.local_player
        player.health = 0.5
        player.x, player.y = 0, 0
        match.tick()
        assert match.state is MatchState.GAMEOVER

        generation = match.generation
        await match.start_lobby()
        assert match.generation == generation + 1
        return match

    match = run(scenario())
    assert match.state is MatchState.LOBBY
    assert match.safe_zone.radius == 450
    assert match.guards == {}
    assert match.stats is None
    assert match.used_snippet_ids == []
    assert source.requests[-1] == []
    assert match.snippet == SNIPPETS[0]
    assert all(p.isAlive and p.health == 100 for p in match.players.values())


def test_fetch_from_abandoned_match_is_ignored(make_match, source):
    async def scenario():
        match = await started(make_match())
        source.gate = asyncio.Event()
        match.handle_input("abc")  # completion, fetch now pending
        await settle()

        restart = asyncio.create_task(match.start_lobby())
        await settle()
        source.gate.set()
        await restart
        await settle()
        assert match.snippet == SNIPPETS[0]
        assert match.used_snippet_ids == []

        # A late result tagged with the old generation changes nothing
        await match._load_snippet(["snip-a"], match.generation - 1)
        assert match.snippet == SNIPPETS[0]
        assert match.used_snippet_ids == []

    run(scenario())


def test_fetch_failure_is_not_fatal(make_match):
    async def scenario():
        match = make_match(snippet_source=FailingSnippetSource())
        await match.start_lobby()
        assert match.snippet is None
        assert not match.loading_snippet
        assert match.logs[-1].msg == "Snippet fetch error."

    run(scenario())


def test_failed_swap_keeps_previous_snippet(make_match):
    async def scenario():
        match = await started(make_match())
        match.snippet_source = FailingSnippetSource()
        match.handle_input("abc")
        await settle()
        assert match.snippet == SNIPPETS[0]
        assert match.matcher.buffer == ""
        assert match.handle_input("a") is not None

    run(scenario())


def test_tick_loop_runs_and_stops_on_restart(make_match):
    frames = []

    async def on_frame():
        frames.append(1)

    async def scenario():
        match = await started(make_match(tick_interval=0.005, frame_listener=on_frame))
        await asyncio.sleep(0.05)
        assert frames
        assert match.safe_zone.radius < 450

        await match.start_lobby()
        count = len(frames)
        await asyncio.sleep(0.03)
        assert len(frames) == count
        assert match.safe_zone.radius == 450
        match.shutdown()

    run(scenario())


def test_snapshot_is_a_copy(make_match):
    match = make_match()
    run(match.start_lobby())
    snapshot = match.snapshot()
    snapshot["players"][0]["health"] = 1
    snapshot["safeZone"]["radius"] = 1
    assert match.local_player.health == 100
    assert match.safe_zone.radius == 450
    assert snapshot["state"] == "LOBBY"
    assert snapshot["snippet"]["gitUrl"] == "snip-a"


def test_tick_alerts_when_zone_crosses_fifty(make_match):
    async def scenario():
        match = await started(make_match())
        match.drain_events()
        match.safe_zone.radius = 401.0
        match.tick()
        assert match.safe_zone.radius == 400.25

        events = match.drain_events()
        assert {"type": "sound", "name": "alert"} in events
        assert {
            "type": "log",
            "entry": {"msg": "Critical: Safe zone shrinking rapidly.", "type": "sys"},
        } in events
        assert match.logs[-1].msg == "Critical: Safe zone shrinking rapidly."
        assert match.logs[-1].type == "sys"

        match.tick()
        assert {"type": "sound", "name": "alert"} not in match.drain_events()

    run(scenario())


def test_tick_attrition_eliminates_bots(make_match):
    async def scenario():
        match = await started(make_match())
        match.drain_events()
        match.rng.value = 0.001
        match.tick()

        assert match.alive_bots_count() == 0
        assert all(not p.isAlive and p.health == 0 for p in match.players.values() if p.isBot)
        assert match.local_player.isAlive
        assert match.state is MatchState.PLAYING

        logged = [e["entry"] for e in match.drain_events() if e["type"] == "log"]
        bot = match.players["bot-0"]
        assert {"msg": f"Process {bot.name} killed.", "type": "err"} in logged
        assert match.spectator_chat == []

    run(scenario())
