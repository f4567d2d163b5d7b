"""
Per-player tallies (goals, cards, substitutions) aggregated from match event logs.
Read-only over the matches it is given; callers choose which matches count.
"""
from __future__ import annotations

from typing import Iterable

from matchday.models import Match, MatchEventType, PlayerStatLine, Roster


def aggregate_player_stats(
    matches: Iterable[Match],
    roster: Roster | None = None,
) -> list[PlayerStatLine]:
    """
    One line per player who appears in any event.
    For SUBSTITUTION the primary player went off and the secondary came on.
    Sorted by goals (desc), then name/id for a stable order.
    """
    lines: dict[str, PlayerStatLine] = {}

    def line_for(player_id: str, team_id: str) -> PlayerStatLine:
        line = lines.get(player_id)
        if line is None:
            name = roster.name_of(player_id) if roster is not None else player_id
            line = PlayerStatLine(player_id=player_id, team_id=team_id, player_name=name)
            lines[player_id] = line
        return line

    for m in matches:
        for e in m.events:
            primary = line_for(e.primary_player_id, e.team_id)
            if e.type == MatchEventType.GOAL:
                primary.goals += 1
            elif e.type == MatchEventType.YELLOW_CARD:
                primary.yellow_cards += 1
            elif e.type == MatchEventType.RED_CARD:
                primary.red_cards += 1
            elif e.type == MatchEventType.SUBSTITUTION:
                primary.substitutions_out += 1
                if e.secondary_player_id:
                    line_for(e.secondary_player_id, e.team_id).substitutions_in += 1

    return sorted(lines.values(), key=lambda s: (-s.goals, s.player_name, s.player_id))


def top_scorers(matches: Iterable[Match], roster: Roster | None = None, limit: int = 10) -> list[PlayerStatLine]:
    """Players with at least one goal, best first."""
    return [s for s in aggregate_player_stats(matches, roster) if s.goals > 0][:limit]
