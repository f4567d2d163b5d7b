"""
SQLite schema for competition entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def teams_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        logo_url TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL
    );
    """


def players_schema() -> str:
    """A player belongs to exactly one team at a time."""
    return """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_players_team ON players(team_id);
    """


def competitions_schema() -> str:
    """team_ids is a JSON array; its order defines the schedule."""
    return """
    CREATE TABLE IF NOT EXISTS competitions (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        team_ids TEXT NOT NULL,
        two_legged INTEGER NOT NULL DEFAULT 0,
        points_for_win INTEGER NOT NULL DEFAULT 3,
        points_for_tie_break_win INTEGER NOT NULL DEFAULT 2,
        created_at TEXT NOT NULL
    );
    """


def matches_schema() -> str:
    """Fixture plus live state. events_json is the ordered event log."""
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id TEXT PRIMARY KEY,
        competition_id TEXT NOT NULL,
        home_team_id TEXT NOT NULL,
        away_team_id TEXT NOT NULL,
        home_score INTEGER NOT NULL DEFAULT 0,
        away_score INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'Not Started',
        elapsed_seconds INTEGER NOT NULL DEFAULT 0,
        events_json TEXT NOT NULL DEFAULT '[]',
        stage TEXT,
        date TEXT,
        FOREIGN KEY (competition_id) REFERENCES competitions(id),
        FOREIGN KEY (home_team_id) REFERENCES teams(id),
        FOREIGN KEY (away_team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_matches_competition ON matches(competition_id);
    CREATE INDEX IF NOT EXISTS ix_matches_status ON matches(status);
    """


def sanctions_schema() -> str:
    """target_kind is 'team' or 'player'; target_id is the matching id."""
    return """
    CREATE TABLE IF NOT EXISTS sanctions (
        id TEXT PRIMARY KEY,
        competition_id TEXT NOT NULL,
        target_kind TEXT NOT NULL,
        target_id TEXT NOT NULL,
        reason TEXT NOT NULL,
        details TEXT NOT NULL DEFAULT '',
        date TEXT NOT NULL,
        FOREIGN KEY (competition_id) REFERENCES competitions(id)
    );
    CREATE INDEX IF NOT EXISTS ix_sanctions_competition ON sanctions(competition_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Order: teams, players, competitions, matches, sanctions."""
    return "\n".join([
        teams_schema(),
        players_schema(),
        competitions_schema(),
        matches_schema(),
        sanctions_schema(),
    ])
