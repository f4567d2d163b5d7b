"""
Service layer: scheduling, standings, player statistics and the match status state machine.
scheduling/standings/player_stats are pure; competition_service orchestrates persistence.
"""
from .scheduling import BYE, Pairing, build_fixtures, generate_schedule, round_robin_pairings
from .standings import UnknownTeamError, compute_standings
from .player_stats import aggregate_player_stats, top_scorers
from .competition_service import (
    CompetitionService,
    CompetitionNotFoundError,
    MatchNotFoundError,
    MatchTransitionError,
)

__all__ = [
    "BYE",
    "Pairing",
    "build_fixtures",
    "generate_schedule",
    "round_robin_pairings",
    "UnknownTeamError",
    "compute_standings",
    "aggregate_player_stats",
    "top_scorers",
    "CompetitionService",
    "CompetitionNotFoundError",
    "MatchNotFoundError",
    "MatchTransitionError",
]
