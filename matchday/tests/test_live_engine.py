"""
Tests for the live match engine: clock, events, score invariants, resets and snapshot emission.
Clock scenarios run under asyncio.run with an instant sleep, so ticks are deterministic.
"""
from __future__ import annotations

import asyncio
import itertools
import logging

import pytest

from matchday.live import (
    ClockStateError,
    EngineClosedError,
    EventNotFoundError,
    EventValidationError,
    LiveMatchEngine,
    LiveMatchRegistry,
    MatchClock,
    MatchSnapshot,
    SnapshotEmitter,
    format_clock,
)
from matchday.models import Match, MatchEventType, MatchStatus, Player, Roster, Team

HOME = Team(id="home", name="Home FC")
AWAY = Team(id="away", name="Away United")


async def instant(_seconds: float) -> None:
    await asyncio.sleep(0)


def _roster() -> Roster:
    return Roster([
        Player(id="h1", team_id="home", name="H One"),
        Player(id="h2", team_id="home", name="H Two"),
        Player(id="a1", team_id="away", name="A One"),
        Player(id="a2", team_id="away", name="A Two"),
    ])


def _engine(elapsed: int = 0, **kwargs) -> LiveMatchEngine:
    ids = itertools.count(1)
    match = Match(
        id="m1",
        competition_id="c1",
        home_team=HOME,
        away_team=AWAY,
        status=MatchStatus.IN_PROGRESS,
        elapsed_seconds=elapsed,
    )
    kwargs.setdefault("sleep", instant)
    kwargs.setdefault("clock_interval", 0)
    return LiveMatchEngine(match, _roster(), id_factory=lambda: f"e{next(ids)}", **kwargs)


async def _run_until(engine: LiveMatchEngine, seconds: int) -> None:
    while engine.elapsed_seconds < seconds:
        await asyncio.sleep(0)


async def _idle(turns: int = 25) -> None:
    for _ in range(turns):
        await asyncio.sleep(0)


# ---- Clock ----


def test_goal_at_125_seconds_is_minute_two():
    async def scenario():
        engine = _engine()
        engine.start()
        await _run_until(engine, 125)
        engine.pause()
        snap = engine.add_event(MatchEventType.GOAL, "home", "h1")
        engine.close()
        return snap

    snap = asyncio.run(scenario())
    assert snap.elapsed_seconds == 125
    assert snap.home_score == 1
    assert snap.away_score == 0
    assert snap.events[0].minute == 2
    assert snap.minute == 2


def test_pause_stops_ticks_and_resume_continues():
    async def scenario():
        engine = _engine()
        engine.start()
        await _run_until(engine, 10)
        paused = engine.pause()
        await _idle()
        after_idle = engine.elapsed_seconds
        engine.resume()
        await _run_until(engine, 20)
        engine.close()
        return paused, after_idle, engine.elapsed_seconds

    paused, after_idle, final = asyncio.run(scenario())
    assert paused.elapsed_seconds == 10
    assert paused.clock_running is False
    assert after_idle == 10
    assert final >= 20


def test_start_twice_does_not_double_tick():
    async def scenario():
        engine = _engine()
        engine.start()
        engine.start()
        ticks = []
        engine.subscribe(lambda s: ticks.append(s) if s.reason == "tick" else None)
        await _run_until(engine, 30)
        engine.pause()
        engine.close()
        return [s.elapsed_seconds for s in ticks]

    seconds = asyncio.run(scenario())
    assert seconds == list(range(1, 31))


def test_resume_before_start_raises():
    engine = _engine()
    with pytest.raises(ClockStateError):
        engine.resume()


def test_restored_elapsed_time_counts_as_started():
    async def scenario():
        engine = _engine(elapsed=600)
        snap = engine.resume()
        engine.close()
        return snap

    snap = asyncio.run(scenario())
    assert snap.clock_running is True
    assert snap.elapsed_seconds == 600


def test_start_requires_running_loop():
    engine = _engine()
    with pytest.raises(RuntimeError):
        engine.start()
    assert engine.clock_running is False
    assert engine.started is False


def test_no_ticks_after_close():
    async def scenario():
        engine = _engine()
        engine.start()
        await _run_until(engine, 5)
        engine.close()
        at_close = engine.elapsed_seconds
        await _idle()
        return at_close, engine.elapsed_seconds

    at_close, later = asyncio.run(scenario())
    assert later == at_close


def test_clock_generation_invalidates_old_ticks():
    async def scenario():
        seen = []
        clock = MatchClock(seen.append, interval=0, sleep=instant)
        clock.start()
        first = clock.generation
        await _idle(3)
        clock.stop()
        stale = clock.is_current(first)
        count = len(seen)
        await _idle()
        return stale, count, len(seen), set(seen) == {first}

    stale, count, later, single_gen = asyncio.run(scenario())
    assert stale is False
    assert count > 0
    assert later == count
    assert single_gen


# ---- Events ----


def test_goal_and_remove_restores_score():
    engine = _engine()
    snap = engine.add_event(MatchEventType.GOAL, "away", "a1")
    assert snap.away_score == 1
    snap = engine.remove_event(snap.events[0].id)
    assert snap.away_score == 0
    assert snap.events == ()


def test_event_type_accepts_string():
    engine = _engine()
    snap = engine.add_event("YELLOW_CARD", "home", "h2")
    assert snap.events[0].type == MatchEventType.YELLOW_CARD
    assert snap.home_score == 0


def test_cards_do_not_change_score():
    engine = _engine()
    engine.add_event(MatchEventType.YELLOW_CARD, "home", "h1")
    snap = engine.add_event(MatchEventType.RED_CARD, "away", "a2")
    assert (snap.home_score, snap.away_score) == (0, 0)
    assert len(snap.events) == 2


def test_substitution_records_both_players():
    engine = _engine()
    snap = engine.add_event(MatchEventType.SUBSTITUTION, "home", "h1", "h2")
    e = snap.events[0]
    assert e.primary_player_id == "h1"
    assert e.secondary_player_id == "h2"


@pytest.mark.parametrize(
    "args, message",
    [
        ((MatchEventType.GOAL, "other", "h1"), "not playing"),
        ((MatchEventType.GOAL, "home", None), "Please select the player(s)."),
        ((MatchEventType.GOAL, "home", "a1"), "not registered"),
        ((MatchEventType.SUBSTITUTION, "home", "h1", None), "Please select the player(s)."),
        ((MatchEventType.SUBSTITUTION, "home", "h1", "h1"), "Players cannot substitute themselves."),
        ((MatchEventType.SUBSTITUTION, "home", "h1", "a1"), "not registered"),
        ((MatchEventType.YELLOW_CARD, "home", "h1", "h2"), "single player"),
        (("OFFSIDE", "home", "h1"), "Unknown event type"),
    ],
)
def test_invalid_events_rejected_without_mutation(args, message):
    engine = _engine()
    engine.add_event(MatchEventType.GOAL, "home", "h1")
    before = engine.snapshot()
    with pytest.raises(EventValidationError) as exc:
        engine.add_event(*args)
    assert message in str(exc.value)
    after = engine.snapshot()
    assert after.events == before.events
    assert (after.home_score, after.away_score) == (before.home_score, before.away_score)


def test_remove_unknown_event_raises():
    engine = _engine()
    with pytest.raises(EventNotFoundError):
        engine.remove_event("nope")


def test_removing_goal_never_goes_below_zero():
    engine = _engine()
    snap = engine.add_event(MatchEventType.GOAL, "home", "h1")
    engine.match.home_score = 0
    snap = engine.remove_event(snap.events[0].id)
    assert snap.home_score == 0
    assert snap.events == ()


def test_repeated_goal_removal_tracks_each_side():
    engine = _engine()
    first = engine.add_event(MatchEventType.GOAL, "home", "h1").events[-1].id
    second = engine.add_event(MatchEventType.GOAL, "home", "h2").events[-1].id
    snap = engine.add_event(MatchEventType.GOAL, "away", "a1")
    away_goal = snap.events[-1].id
    assert (snap.home_score, snap.away_score) == (2, 1)

    snap = engine.remove_event(away_goal)
    assert (snap.home_score, snap.away_score) == (2, 0)
    snap = engine.remove_event(first)
    assert (snap.home_score, snap.away_score) == (1, 0)
    snap = engine.remove_event(second)
    assert (snap.home_score, snap.away_score) == (0, 0)
    assert snap.events == ()
    with pytest.raises(EventNotFoundError):
        engine.remove_event(second)
    assert engine.home_score == 0


def test_score_equals_goal_count():
    engine = _engine()
    engine.add_event(MatchEventType.GOAL, "home", "h1")
    engine.add_event(MatchEventType.GOAL, "home", "h2")
    snap = engine.add_event(MatchEventType.GOAL, "away", "a1")
    goal = next(e for e in snap.events if e.team_id == "home")
    snap = engine.remove_event(goal.id)
    home_goals = sum(1 for e in snap.events if e.type == MatchEventType.GOAL and e.team_id == "home")
    away_goals = sum(1 for e in snap.events if e.type == MatchEventType.GOAL and e.team_id == "away")
    assert (snap.home_score, snap.away_score) == (home_goals, away_goals) == (1, 1)


def test_timeline_latest_minute_first():
    engine = _engine()
    engine.add_event(MatchEventType.GOAL, "home", "h1")
    engine.match.elapsed_seconds = 600
    engine.add_event(MatchEventType.YELLOW_CARD, "away", "a1")
    assert [e.minute for e in engine.timeline()] == [10, 0]
    assert [e.minute for e in engine.events] == [0, 10]


# ---- Resets ----


def test_reset_score_keeps_non_goal_events():
    engine = _engine()
    engine.add_event(MatchEventType.GOAL, "home", "h1")
    engine.add_event(MatchEventType.YELLOW_CARD, "home", "h1")
    engine.add_event(MatchEventType.GOAL, "away", "a1")
    snap = engine.reset_score()
    assert (snap.home_score, snap.away_score) == (0, 0)
    assert [e.type for e in snap.events] == [MatchEventType.YELLOW_CARD]
    again = engine.reset_score()
    assert again.events == snap.events


def test_reset_clock_clears_everything():
    async def scenario():
        engine = _engine()
        engine.start()
        await _run_until(engine, 61)
        engine.add_event(MatchEventType.GOAL, "home", "h1")
        first = engine.reset_clock()
        second = engine.reset_clock()
        await _idle()
        engine.close()
        return engine, first, second

    engine, first, second = asyncio.run(scenario())
    for snap in (first, second):
        assert snap.elapsed_seconds == 0
        assert snap.events == ()
        assert (snap.home_score, snap.away_score) == (0, 0)
        assert snap.clock_running is False
    assert engine.elapsed_seconds == 0
    assert engine.started is False


def test_engine_never_changes_status():
    engine = _engine()
    engine.add_event(MatchEventType.GOAL, "home", "h1")
    engine.reset_clock()
    assert engine.snapshot().status == MatchStatus.IN_PROGRESS


# ---- Emission & lifecycle ----


def test_snapshots_emitted_in_order():
    engine = _engine()
    seen: list[MatchSnapshot] = []
    unsubscribe = engine.subscribe(seen.append)
    engine.add_event(MatchEventType.GOAL, "home", "h1")
    engine.reset_score()
    unsubscribe()
    engine.add_event(MatchEventType.GOAL, "home", "h1")
    assert [s.reason for s in seen] == ["add_event", "reset_score"]
    assert seen[0].sequence < seen[1].sequence
    assert seen[0].home_score == 1


def test_failing_subscriber_is_logged_and_skipped(caplog):
    engine = _engine()
    received = []

    def broken(_snapshot):
        raise RuntimeError("boom")

    engine.subscribe(broken)
    engine.subscribe(received.append)
    with caplog.at_level(logging.ERROR, logger="matchday.live.emitter"):
        snap = engine.add_event(MatchEventType.GOAL, "home", "h1")
    assert snap.home_score == 1
    assert len(received) == 1
    assert "Snapshot subscriber" in caplog.text


def test_stream_yields_initial_then_updates_until_close():
    async def scenario():
        engine = _engine()
        got = []

        async def consume():
            async for snap in engine.emitter.stream(initial=engine.snapshot("connect")):
                got.append(snap.reason)

        task = asyncio.create_task(consume())
        await _idle(3)
        engine.add_event(MatchEventType.GOAL, "home", "h1")
        await _idle(3)
        engine.close()
        await asyncio.wait_for(task, timeout=1)
        return got

    assert asyncio.run(scenario()) == ["connect", "add_event"]


def test_closed_engine_rejects_operations():
    engine = _engine()
    engine.close()
    engine.close()
    assert engine.closed
    with pytest.raises(EngineClosedError):
        engine.add_event(MatchEventType.GOAL, "home", "h1")
    with pytest.raises(EngineClosedError):
        engine.pause()


def test_async_context_manager_closes():
    async def scenario():
        async with _engine() as engine:
            engine.start()
            await _run_until(engine, 3)
        return engine

    engine = asyncio.run(scenario())
    assert engine.closed
    assert engine.clock_running is False


def test_emitter_subscriber_count():
    emitter = SnapshotEmitter()
    unsubscribe = emitter.subscribe(lambda s: None)
    assert emitter.subscriber_count == 1
    unsubscribe()
    assert emitter.subscriber_count == 0


def test_registry_open_reuses_and_discard_closes():
    match = Match(id="m1", competition_id="c1", home_team=HOME, away_team=AWAY)
    opened = []
    registry = LiveMatchRegistry(engine_factory=lambda m, r, **kw: _engine(), on_open=opened.append)
    first = registry.open(match, _roster())
    assert registry.open(match, _roster()) is first
    assert "m1" in registry and len(registry) == 1
    assert opened == [first]
    registry.discard("m1")
    assert first.closed
    assert registry.get("m1") is None
    second = registry.open(match, _roster())
    assert second is not first
    registry.close_all()
    assert second.closed
    assert len(registry) == 0


def test_format_clock():
    assert format_clock(0) == "00:00"
    assert format_clock(125) == "02:05"
    assert format_clock(3600) == "60:00"
