"""
Deterministic round-robin schedule generation for competitions (Berger tables).

Round-robin is used so every team plays every other team exactly once per leg;
a leg is N-1 rounds (N even) or N rounds (N odd). Each team plays at most one
match per round.

BYE handling: when the number of teams is odd, we add a virtual BYE. Each round one
team is paired with BYE and does not play. Bye pairings stay in the schedule so
fairness can be checked; build_fixtures drops them when emitting matches.

Uses the circle method: the first slot is fixed, the others rotate each round.
Same team ordering yields the same schedule (deterministic for persistence).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Generic, Protocol, Sequence, TypeVar, Union

from matchday.config import ROUND_INTERVAL_DAYS
from matchday.models import Match, MatchStatus, Team


class _HasId(Protocol):
    @property
    def id(self) -> str: ...


T = TypeVar("T", bound=_HasId)


@dataclass(frozen=True)
class _Bye:
    """Placeholder opponent for odd-sized competitions. Compare with `is BYE`."""
    id: str = "bye"

    def __repr__(self) -> str:
        return "BYE"


# Sentinel for bye when number of teams is odd
BYE = _Bye()


@dataclass(frozen=True)
class Pairing(Generic[T]):
    home: Union[T, _Bye]
    away: Union[T, _Bye]

    @property
    def is_bye(self) -> bool:
        return self.home is BYE or self.away is BYE

    def resting_team(self) -> T | None:
        """The team sitting out this round, or None for a playable pairing."""
        if self.home is BYE:
            return self.away  # type: ignore[return-value]
        if self.away is BYE:
            return self.home  # type: ignore[return-value]
        return None

    def mirrored(self) -> Pairing[T]:
        return Pairing(home=self.away, away=self.home)


def generate_schedule(teams: Sequence[T], two_legged: bool = False) -> list[list[Pairing[T]]]:
    """
    Generate round-robin rounds for teams (any objects with an `id`).
    Fewer than 2 teams => empty schedule. If two_legged, a mirrored second leg
    (home/away swapped) follows the first.
    """
    if len(teams) < 2:
        return []
    participants: list = list(teams)
    if len(participants) % 2 == 1:
        participants.append(BYE)
    n = len(participants)  # n is even
    half = n // 2
    rounds_count = n - 1

    top = participants[:half]
    bottom = participants[half:][::-1]
    schedule: list[list[Pairing[T]]] = []
    for rnd in range(rounds_count):
        # Alternate home side so the fixed first team gets balanced home/away games
        if rnd % 2 == 0:
            current = [Pairing(home=bottom[i], away=top[i]) for i in range(half)]
        else:
            current = [Pairing(home=top[i], away=bottom[i]) for i in range(half)]
        schedule.append(current)
        # Rotate around the fixed top[0]: last of top -> front of bottom,
        # then last of bottom -> second slot of top.
        bottom.insert(0, top.pop())
        top.insert(1, bottom.pop())

    if two_legged:
        schedule += [[p.mirrored() for p in rnd] for rnd in schedule]
    return schedule


def playable_pairings(round_: Sequence[Pairing[T]]) -> list[Pairing[T]]:
    """Pairings of a round that produce a match (bye pairings removed)."""
    return [p for p in round_ if not p.is_bye]


def round_robin_pairings(team_ids: list[str], two_legged: bool = False) -> list[tuple[int, str, str | None]]:
    """
    Flat view of the schedule: (round_number, home_team_id, away_team_id).
    away_team_id is None when home_team_id has a bye. Round numbers are 1-based.
    """
    teams = [Team(id=tid, name=tid) for tid in team_ids]
    result: list[tuple[int, str, str | None]] = []
    for number, rnd in enumerate(generate_schedule(teams, two_legged), start=1):
        for p in rnd:
            resting = p.resting_team()
            if resting is not None:
                result.append((number, resting.id, None))
            else:
                result.append((number, p.home.id, p.away.id))
    return result


def fixture_id(competition_id: str, home_id: str, away_id: str) -> str:
    # Ordered pairs are unique across both legs, so the id is stable per fixture
    return f"match-{competition_id}-{home_id}-{away_id}"


def build_fixtures(
    competition_id: str,
    schedule: Sequence[Sequence[Pairing[Team]]],
    start_date: datetime | None = None,
    round_interval: timedelta = timedelta(days=ROUND_INTERVAL_DAYS),
) -> list[Match]:
    """
    Turn a schedule into NotStarted, zero-score Match records.
    Round N is dated start_date + N * round_interval and labelled "Round N".
    Bye pairings are skipped.
    """
    start = start_date or datetime.now(timezone.utc)
    matches: list[Match] = []
    for number, rnd in enumerate(schedule, start=1):
        date = start + round_interval * number
        for p in playable_pairings(rnd):
            matches.append(
                Match(
                    id=fixture_id(competition_id, p.home.id, p.away.id),
                    competition_id=competition_id,
                    home_team=p.home,  # type: ignore[arg-type]
                    away_team=p.away,  # type: ignore[arg-type]
                    status=MatchStatus.NOT_STARTED,
                    stage=f"Round {number}",
                    date=date,
                )
            )
    return matches


def schedule_to_dicts(schedule: Sequence[Sequence[Pairing[Team]]]) -> list[dict]:
    """
    Return rounds as { "round_number": int, "pairings": [...], "bye_team_id": str | None }.
    Used by the API; bye pairings are reported separately from playable ones.
    """
    out = []
    for number, rnd in enumerate(schedule, start=1):
        bye_team = next((p.resting_team() for p in rnd if p.is_bye), None)
        out.append({
            "round_number": number,
            "pairings": [
                {"home_team_id": p.home.id, "away_team_id": p.away.id}
                for p in playable_pairings(rnd)
            ],
            "bye_team_id": bye_team.id if bye_team is not None else None,
        })
    return out
