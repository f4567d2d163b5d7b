"""
League table computation from finished matches.
Pure: the same competition and matches always give the same, identically ordered table.
"""
from __future__ import annotations

from typing import Iterable, Mapping

from matchday.config import DRAW_POINTS
from matchday.models import CompetitionConfig, Match, MatchStatus, Standing, Team


class UnknownTeamError(LookupError):
    """Competition lists a team id that the team lookup does not know."""


def _sort_key(s: Standing) -> tuple[int, int, int]:
    return (s.points, s.goal_difference, s.goals_for)


def compute_standings(
    competition: CompetitionConfig,
    matches: Iterable[Match],
    teams: Mapping[str, Team] | None = None,
    strict: bool = False,
) -> list[Standing]:
    """
    Aggregate the competition's Finished matches into a sorted table.

    teams: optional id -> Team lookup for names/logos. Team ids missing from it are
    left out of the table (or raise UnknownTeamError when strict). Matches whose
    home or away team has no row are ignored.

    Win = competition.points_for_win, draw = 1 point each, loss = 0.
    Sorted by points, goal difference, goals for (all descending); remaining ties
    keep the competition's team order.
    """
    table: dict[str, Standing] = {}
    for team_id in competition.team_ids:
        if teams is None:
            table[team_id] = Standing(team_id=team_id)
            continue
        team = teams.get(team_id)
        if team is None:
            if strict:
                raise UnknownTeamError(f"Team not found: {team_id}")
            continue
        table[team_id] = Standing(team_id=team_id, team_name=team.name, logo_url=team.logo_url)

    for m in matches:
        if m.competition_id != competition.id or m.status != MatchStatus.FINISHED:
            continue
        home = table.get(m.home_team.id)
        away = table.get(m.away_team.id)
        if home is None or away is None:
            continue
        home.played += 1
        away.played += 1
        home.goals_for += m.home_score
        home.goals_against += m.away_score
        away.goals_for += m.away_score
        away.goals_against += m.home_score
        if m.home_score > m.away_score:
            home.wins += 1
            away.losses += 1
            home.points += competition.points_for_win
        elif m.away_score > m.home_score:
            away.wins += 1
            home.losses += 1
            away.points += competition.points_for_win
        else:
            home.draws += 1
            away.draws += 1
            home.points += DRAW_POINTS
            away.points += DRAW_POINTS

    rows = list(table.values())
    for s in rows:
        s.goal_difference = s.goals_for - s.goals_against
    # sorted() is stable, so equal rows stay in team_ids order
    return sorted(rows, key=_sort_key, reverse=True)
