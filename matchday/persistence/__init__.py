"""
Persistence layer for competition data.
No business logic, no live engine. Only read/write interfaces.
"""
from .db import get_connection, get_db_path, init_db, set_db_path
from .repositories import (
    CompetitionRepository,
    MatchRepository,
    PlayerRepository,
    SanctionRepository,
    TeamRepository,
)

__all__ = [
    "get_connection",
    "get_db_path",
    "init_db",
    "set_db_path",
    "CompetitionRepository",
    "MatchRepository",
    "PlayerRepository",
    "SanctionRepository",
    "TeamRepository",
]
