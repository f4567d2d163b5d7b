"""
Run a demo competition in the terminal: build teams and squads, generate the
round-robin schedule, play fixtures through the live match engine (real clock,
scripted random events) and print the standings table.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import random
from datetime import datetime, timezone

from matchday.live import LiveMatchEngine, MatchSnapshot
from matchday.models import CompetitionConfig, Match, MatchEventType, MatchStatus, Player, Roster, Standing, Team
from matchday.services.scheduling import build_fixtures, generate_schedule
from matchday.services.standings import compute_standings

logger = logging.getLogger(__name__)

DEFAULT_TEAMS = ["Ajax", "Benfica", "Celtic", "Dynamo", "Espanyol"]
SQUAD_SIZE = 11
MATCH_MINUTES = 90

# Per-minute chances
GOAL_CHANCE = 0.03
YELLOW_CHANCE = 0.02
RED_CHANCE = 0.002
SUB_CHANCE = 0.01


async def _instant_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


def _build_teams(names: list[str]) -> tuple[list[Team], Roster]:
    teams = [Team(id=f"team-{i + 1}", name=name) for i, name in enumerate(names)]
    roster = Roster()
    for t in teams:
        for n in range(1, SQUAD_SIZE + 1):
            roster.add(Player(id=f"{t.id}-p{n}", team_id=t.id, name=f"{t.name} #{n}"))
    return teams, roster


def _print_snapshot(snapshot: MatchSnapshot, names: dict[str, str]) -> None:
    if snapshot.reason != "add_event":
        return
    event = snapshot.events[-1]
    home, away = names[snapshot.home_team_id], names[snapshot.away_team_id]
    print(
        f"  {event.minute:>3}'  {event.type.value:<13} {names[event.team_id]:<10}"
        f"   {home} {snapshot.home_score}-{snapshot.away_score} {away}"
    )


def _random_event(
    engine: LiveMatchEngine,
    rng: random.Random,
    players: dict[str, list[str]],
) -> None:
    team_id = rng.choice(engine.match.team_ids())
    squad = players[team_id]
    roll = rng.random()
    if roll < GOAL_CHANCE:
        engine.add_event(MatchEventType.GOAL, team_id, rng.choice(squad))
    elif roll < GOAL_CHANCE + YELLOW_CHANCE:
        engine.add_event(MatchEventType.YELLOW_CARD, team_id, rng.choice(squad))
    elif roll < GOAL_CHANCE + YELLOW_CHANCE + RED_CHANCE:
        engine.add_event(MatchEventType.RED_CARD, team_id, rng.choice(squad))
    elif roll < GOAL_CHANCE + YELLOW_CHANCE + RED_CHANCE + SUB_CHANCE:
        off, on = rng.sample(squad, 2)
        engine.add_event(MatchEventType.SUBSTITUTION, team_id, off, on)


async def play_match(
    match: Match,
    roster: Roster,
    rng: random.Random,
    names: dict[str, str],
    fast: bool = False,
    minutes: int = MATCH_MINUTES,
) -> Match:
    """Drive one fixture through the live engine minute by minute, then mark it Finished."""
    players = {tid: [f"{tid}-p{n}" for n in range(1, SQUAD_SIZE + 1)] for tid in match.team_ids()}
    # One match minute per real second unless fast
    interval = 0.0 if fast else 1.0 / 60
    sleep = _instant_sleep if fast else None
    match.status = MatchStatus.IN_PROGRESS
    async with LiveMatchEngine(match, roster, clock_interval=interval, sleep=sleep) as engine:
        engine.subscribe(lambda snap: _print_snapshot(snap, names))
        engine.start()
        for minute in range(1, minutes + 1):
            while engine.elapsed_seconds < minute * 60:
                await asyncio.sleep(0 if fast else interval)
            _random_event(engine, rng, players)
        engine.pause()
    match.status = MatchStatus.FINISHED
    return match


def _print_table(standings: list[Standing]) -> None:
    print()
    print("=" * 60)
    print(f"  {'#':>2}  {'Team':<12} {'P':>3} {'W':>3} {'D':>3} {'L':>3} {'GF':>4} {'GA':>4} {'GD':>4} {'Pts':>4}")
    print("  " + "-" * 56)
    for pos, s in enumerate(standings, start=1):
        print(
            f"  {pos:>2}  {s.team_name:<12} {s.played:>3} {s.wins:>3} {s.draws:>3} {s.losses:>3}"
            f" {s.goals_for:>4} {s.goals_against:>4} {s.goal_difference:>4} {s.points:>4}"
        )
    print("=" * 60)
    print()


def run(
    seed: int | None = None,
    team_names: list[str] | None = None,
    rounds: int | None = None,
    two_legged: bool = False,
    fast: bool = False,
    minutes: int = MATCH_MINUTES,
) -> list[Standing]:
    """Play the first `rounds` rounds (all by default) and return the final table."""
    if seed is None:
        seed = random.randint(1, 2**31 - 1)
    rng = random.Random(seed)
    teams, roster = _build_teams(team_names or DEFAULT_TEAMS)
    names = {t.id: t.name for t in teams}
    competition = CompetitionConfig(id="demo", name="Demo League", team_ids=tuple(t.id for t in teams), two_legged=two_legged)

    schedule = generate_schedule(teams, two_legged)
    if rounds is not None:
        schedule = schedule[:rounds]
    fixtures = build_fixtures(competition.id, schedule, start_date=datetime.now(timezone.utc))
    print(f"\n  {competition.name}: {len(teams)} teams, {len(schedule)} rounds, {len(fixtures)} fixtures  [seed={seed}]")

    for round_number, round_ in enumerate(schedule, start=1):
        resting = [p.resting_team() for p in round_ if p.is_bye]
        print(f"\n  Round {round_number}" + (f"  (bye: {resting[0].name})" if resting else ""))
        for match in [m for m in fixtures if m.stage == f"Round {round_number}"]:
            print(f"  {match.home_team.name} vs {match.away_team.name}")
            asyncio.run(play_match(match, roster, rng, names, fast=fast, minutes=minutes))
            print(f"  Full time: {match.home_team.name} {match.home_score}-{match.away_score} {match.away_team.name}")

    standings = compute_standings(competition, fixtures, teams={t.id: t for t in teams})
    _print_table(standings)
    return standings


def main():
    parser = argparse.ArgumentParser(description="Run a demo round-robin competition with live matches.")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed for reproducibility")
    parser.add_argument("--teams", nargs="+", default=None, help="Team names (default: 5 demo clubs)")
    parser.add_argument("--rounds", type=int, default=None, help="Only play the first N rounds")
    parser.add_argument("--two-legged", action="store_true", help="Home and away fixtures")
    parser.add_argument("--fast", action="store_true", help="No real-time delay on the match clock")
    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)
    run(seed=args.seed, team_names=args.teams, rounds=args.rounds, two_legged=args.two_legged, fast=args.fast)


if __name__ == "__main__":
    main()
