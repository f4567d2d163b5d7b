"""
Tests for the competition service: match status transitions, guards, schedule
generation and standings over the sqlite store.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from matchday.models import Match, MatchEvent, MatchEventType, MatchStatus
from matchday.persistence.db import get_connection, init_db, set_db_path
from matchday.persistence.repositories import (
    CompetitionRepository,
    MatchRepository,
    PlayerRepository,
    TeamRepository,
)
from matchday.services.competition_service import (
    CompetitionNotFoundError,
    CompetitionService,
    MatchNotFoundError,
    MatchTransitionError,
    can_transition,
)


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "competition_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def competition_service():
    return CompetitionService()


@pytest.fixture
def competition(db_conn):
    """Four teams with two players each, in a single-leg competition."""
    team_repo = TeamRepository()
    player_repo = PlayerRepository()
    ids = []
    for name in ("North", "East", "South", "West"):
        team = team_repo.create(db_conn, name, id=name.lower())
        player_repo.create(db_conn, team.id, f"{name} Striker", id=f"{team.id}-9")
        player_repo.create(db_conn, team.id, f"{name} Keeper", id=f"{team.id}-1")
        ids.append(team.id)
    return CompetitionRepository().create(db_conn, "Spring League", ids, id="spring")


def test_can_transition_table():
    assert can_transition(MatchStatus.NOT_STARTED, MatchStatus.IN_PROGRESS)
    assert can_transition(MatchStatus.IN_PROGRESS, MatchStatus.FINISHED)
    assert not can_transition(MatchStatus.NOT_STARTED, MatchStatus.FINISHED)
    assert not can_transition(MatchStatus.FINISHED, MatchStatus.IN_PROGRESS)


def test_generate_schedule_persists_fixtures(db_conn, competition_service, competition):
    start = datetime(2024, 8, 1, tzinfo=timezone.utc)
    fixtures = competition_service.generate_competition_schedule(db_conn, competition.id, start_date=start)
    assert len(fixtures) == 6
    stored = MatchRepository().list_by_competition(db_conn, competition.id)
    assert [m.id for m in stored] == [m.id for m in fixtures]
    assert {m.stage for m in stored} == {"Round 1", "Round 2", "Round 3"}
    assert min(m.date for m in stored) == start + timedelta(days=7)
    assert all(m.status == MatchStatus.NOT_STARTED for m in stored)


def test_generate_schedule_replaces_previous(db_conn, competition_service, competition):
    competition_service.generate_competition_schedule(db_conn, competition.id)
    again = competition_service.generate_competition_schedule(db_conn, competition.id)
    stored = competition_service.competition_matches(db_conn, competition.id)
    assert len(stored) == len(again) == 6


def test_generate_schedule_single_team_is_empty(db_conn, competition_service):
    solo = TeamRepository().create(db_conn, "Solo", id="solo")
    rival = TeamRepository().create(db_conn, "Rival", id="rival")
    CompetitionRepository().create(db_conn, "Tiny", ["solo"], id="tiny")
    # Fixtures left over from an earlier team list are cleared
    MatchRepository().create(db_conn, Match(id="stale", competition_id="tiny", home_team=solo, away_team=rival))
    assert competition_service.generate_competition_schedule(db_conn, "tiny") == []
    assert competition_service.competition_matches(db_conn, "tiny") == []


def test_schedule_rounds_include_byes(db_conn, competition_service):
    for tid in ("a", "b", "c"):
        TeamRepository().create(db_conn, tid.upper(), id=tid)
    CompetitionRepository().create(db_conn, "Odd", ["a", "b", "c"], id="odd")
    rounds = competition_service.competition_schedule(db_conn, "odd")
    assert len(rounds) == 3
    assert all(any(p.is_bye for p in rnd) for rnd in rounds)


def test_unknown_competition_and_match(db_conn, competition_service):
    with pytest.raises(CompetitionNotFoundError):
        competition_service.get_competition(db_conn, "nope")
    with pytest.raises(MatchNotFoundError):
        competition_service.start_match(db_conn, "nope")
    assert competition_service.find_match(db_conn, "nope") is None


def test_match_lifecycle(db_conn, competition_service, competition):
    fixtures = competition_service.generate_competition_schedule(db_conn, competition.id)
    mid = fixtures[0].id
    with pytest.raises(MatchTransitionError):
        competition_service.finish_match(db_conn, mid)
    started = competition_service.start_match(db_conn, mid)
    assert started.status == MatchStatus.IN_PROGRESS
    # starting again is a no-op
    assert competition_service.start_match(db_conn, mid).status == MatchStatus.IN_PROGRESS
    finished = competition_service.finish_match(db_conn, mid)
    assert finished.status == MatchStatus.FINISHED
    with pytest.raises(MatchTransitionError):
        competition_service.start_match(db_conn, mid)
    restarted = competition_service.restart_match(db_conn, mid)
    assert restarted.status == MatchStatus.NOT_STARTED


def test_standings_and_player_stats_from_finished_matches(db_conn, competition_service, competition):
    fixtures = competition_service.generate_competition_schedule(db_conn, competition.id)
    match = fixtures[0]
    home, away = match.team_ids()
    competition_service.start_match(db_conn, match.id)
    match = competition_service.get_match(db_conn, match.id)
    match.events = [
        MatchEvent(id="g1", type=MatchEventType.GOAL, minute=10, team_id=home, primary_player_id=f"{home}-9"),
        MatchEvent(id="y1", type=MatchEventType.YELLOW_CARD, minute=20, team_id=away, primary_player_id=f"{away}-1"),
    ]
    match.home_score = 1
    competition_service.save_live_state(db_conn, match)

    # In progress: not in the table yet
    table = competition_service.standings(db_conn, competition.id)
    assert all(s.played == 0 for s in table)

    competition_service.finish_match(db_conn, match.id)
    table = competition_service.standings(db_conn, competition.id)
    assert table[0].team_id == home
    assert table[0].points == 3
    assert table[-1].team_id == away
    assert len(table) == 4

    stats = {s.player_id: s for s in competition_service.player_stats(db_conn, competition.id)}
    assert stats[f"{home}-9"].goals == 1
    assert stats[f"{home}-9"].player_name.endswith("Striker")
    assert stats[f"{away}-1"].yellow_cards == 1


def test_match_roster_covers_both_sides(db_conn, competition_service, competition):
    fixtures = competition_service.generate_competition_schedule(db_conn, competition.id)
    match = fixtures[0]
    roster = competition_service.match_roster(db_conn, match)
    home, away = match.team_ids()
    assert roster.belongs_to(f"{home}-9", home)
    assert roster.belongs_to(f"{away}-1", away)
    assert len(roster) == 4
