"""
Tests for round-robin schedule generation and fixture building.
Deterministic; no duplicate matchups; each team plays at most once per round.
"""
from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone

from matchday.models import MatchStatus, Team
from matchday.services.scheduling import (
    BYE,
    build_fixtures,
    fixture_id,
    generate_schedule,
    playable_pairings,
    round_robin_pairings,
    schedule_to_dicts,
)


def _teams(*ids: str) -> list[Team]:
    return [Team(id=i, name=f"Team {i}") for i in ids]


def _pair_ids(p) -> tuple[str, str]:
    return (p.home.id, p.away.id)


def test_fewer_than_two_teams_gives_empty_schedule():
    assert generate_schedule([]) == []
    assert generate_schedule(_teams("A")) == []
    assert generate_schedule(_teams("A"), two_legged=True) == []


def test_two_teams_single_round():
    schedule = generate_schedule(_teams("A", "B"))
    assert len(schedule) == 1
    assert len(schedule[0]) == 1
    assert set(_pair_ids(schedule[0][0])) == {"A", "B"}


def test_four_teams_single_leg():
    """4 teams: 3 rounds of 2 pairings, every pair exactly once."""
    schedule = generate_schedule(_teams("A", "B", "C", "D"))
    assert len(schedule) == 3
    seen = Counter()
    for rnd in schedule:
        assert len(rnd) == 2
        in_round = [tid for p in rnd for tid in _pair_ids(p)]
        assert sorted(in_round) == ["A", "B", "C", "D"]
        for p in rnd:
            seen[frozenset(_pair_ids(p))] += 1
    assert len(seen) == 6
    assert all(count == 1 for count in seen.values())


def test_four_teams_berger_order():
    """Fixed first team, rotation of the rest, home side alternating by round."""
    schedule = generate_schedule(_teams("A", "B", "C", "D"))
    assert [_pair_ids(p) for p in schedule[0]] == [("D", "A"), ("C", "B")]
    assert [_pair_ids(p) for p in schedule[1]] == [("A", "B"), ("C", "D")]
    assert [_pair_ids(p) for p in schedule[2]] == [("C", "A"), ("B", "D")]


def test_five_teams_each_rests_once():
    """5 teams: bye added, 5 rounds, each team sits out exactly once."""
    schedule = generate_schedule(_teams("A", "B", "C", "D", "E"))
    assert len(schedule) == 5
    resting = []
    for rnd in schedule:
        assert len(rnd) == 3
        byes = [p for p in rnd if p.is_bye]
        assert len(byes) == 1
        resting.append(byes[0].resting_team().id)
        assert len(playable_pairings(rnd)) == 2
    assert sorted(resting) == ["A", "B", "C", "D", "E"]
    real = {frozenset(_pair_ids(p)) for rnd in schedule for p in playable_pairings(rnd)}
    assert len(real) == 10


def test_four_teams_two_legged_mirrors_first_leg():
    single = generate_schedule(_teams("A", "B", "C", "D"))
    double = generate_schedule(_teams("A", "B", "C", "D"), two_legged=True)
    assert len(double) == 6
    for first, second in zip(double[:3], double[3:]):
        assert [_pair_ids(p)[::-1] for p in first] == [_pair_ids(p) for p in second]
    assert [[_pair_ids(p) for p in r] for r in double[:3]] == [[_pair_ids(p) for p in r] for r in single]
    ordered = Counter(_pair_ids(p) for rnd in double for p in rnd)
    assert len(ordered) == 12
    assert all(count == 1 for count in ordered.values())


def test_schedule_is_deterministic():
    teams = _teams("A", "B", "C", "D", "E", "F")
    assert generate_schedule(teams) == generate_schedule(teams)


def test_round_robin_pairings_reports_byes():
    pairings = round_robin_pairings(["A", "B", "C"])
    assert len(pairings) == 6
    byes = sorted(h for _, h, a in pairings if a is None)
    assert byes == ["A", "B", "C"]
    assert all(r in (1, 2, 3) for r, _, _ in pairings)
    assert BYE.id not in {a for _, _, a in pairings}


def test_build_fixtures_skips_byes_and_labels_rounds():
    schedule = generate_schedule(_teams("A", "B", "C"))
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    fixtures = build_fixtures("cup", schedule, start_date=start)
    assert len(fixtures) == 3
    for m in fixtures:
        n = int(m.stage.split()[-1])
        assert m.stage == f"Round {n}"
        assert m.date == start + timedelta(days=7 * n)
        assert m.status == MatchStatus.NOT_STARTED
        assert (m.home_score, m.away_score) == (0, 0)
        assert m.events == []
        assert m.id == fixture_id("cup", m.home_team.id, m.away_team.id)


def test_build_fixtures_ids_unique_over_two_legs():
    schedule = generate_schedule(_teams("A", "B", "C", "D"), two_legged=True)
    fixtures = build_fixtures("league", schedule)
    assert len(fixtures) == 12
    assert len({m.id for m in fixtures}) == 12


def test_schedule_to_dicts():
    rounds = schedule_to_dicts(generate_schedule(_teams("A", "B", "C")))
    assert [r["round_number"] for r in rounds] == [1, 2, 3]
    for r in rounds:
        assert r["bye_team_id"] in {"A", "B", "C"}
        assert len(r["pairings"]) == 1
