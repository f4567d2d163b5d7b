"""
Repository interfaces for competition data.
No business logic: only read/write operations.
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Iterable

from matchday.models import (
    CompetitionConfig,
    Match,
    MatchEvent,
    MatchStatus,
    Player,
    Sanction,
    SanctionTarget,
    TargetPlayer,
    TargetTeam,
    Team,
    target_from_dict,
)


def _parse_datetime(s: str | None) -> datetime | None:
    if s is None:
        return None
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


# ---------- TeamRepository ----------


class TeamRepository:
    """CRUD for teams."""

    def create(self, conn: sqlite3.Connection, name: str, logo_url: str = "", id: str | None = None) -> Team:
        tid = id or str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        conn.execute(
            "INSERT INTO teams (id, name, logo_url, created_at) VALUES (?, ?, ?, ?)",
            (tid, name, logo_url, now),
        )
        conn.commit()
        return Team(id=tid, name=name, logo_url=logo_url)

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute("SELECT id, name, logo_url FROM teams WHERE id = ?", (team_id,)).fetchone()
        if row is None:
            return None
        return Team(id=row["id"], name=row["name"], logo_url=row["logo_url"])

    def list_all(self, conn: sqlite3.Connection) -> list[Team]:
        rows = conn.execute("SELECT id, name, logo_url FROM teams ORDER BY created_at, id").fetchall()
        return [Team(id=r["id"], name=r["name"], logo_url=r["logo_url"]) for r in rows]

    def get_many(self, conn: sqlite3.Connection, team_ids: Iterable[str]) -> dict[str, Team]:
        """id -> Team for the ids that exist; unknown ids are simply absent."""
        out: dict[str, Team] = {}
        for tid in team_ids:
            team = self.get(conn, tid)
            if team is not None:
                out[tid] = team
        return out


# ---------- PlayerRepository ----------


class PlayerRepository:
    """CRUD for players. team_id is the player's current club."""

    def create(self, conn: sqlite3.Connection, team_id: str, name: str, id: str | None = None) -> Player:
        pid = id or str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        conn.execute(
            "INSERT INTO players (id, team_id, name, created_at) VALUES (?, ?, ?, ?)",
            (pid, team_id, name, now),
        )
        conn.commit()
        return Player(id=pid, team_id=team_id, name=name)

    def get(self, conn: sqlite3.Connection, player_id: str) -> Player | None:
        row = conn.execute("SELECT id, team_id, name FROM players WHERE id = ?", (player_id,)).fetchone()
        if row is None:
            return None
        return Player(id=row["id"], team_id=row["team_id"], name=row["name"])

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[Player]:
        rows = conn.execute(
            "SELECT id, team_id, name FROM players WHERE team_id = ? ORDER BY name, id", (team_id,)
        ).fetchall()
        return [Player(id=r["id"], team_id=r["team_id"], name=r["name"]) for r in rows]

    def list_by_teams(self, conn: sqlite3.Connection, team_ids: Iterable[str]) -> list[Player]:
        players: list[Player] = []
        for tid in team_ids:
            players.extend(self.list_by_team(conn, tid))
        return players

    def update_team(self, conn: sqlite3.Connection, player_id: str, team_id: str) -> None:
        """Transfer: a player belongs to exactly one team at a time."""
        conn.execute("UPDATE players SET team_id = ? WHERE id = ?", (team_id, player_id))
        conn.commit()


# ---------- CompetitionRepository ----------


class CompetitionRepository:
    """CRUD for competitions. team_ids stored as a JSON array in schedule order."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        team_ids: list[str],
        two_legged: bool = False,
        points_for_win: int = 3,
        points_for_tie_break_win: int = 2,
        id: str | None = None,
    ) -> CompetitionConfig:
        cid = id or str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        conn.execute(
            "INSERT INTO competitions (id, name, team_ids, two_legged, points_for_win, points_for_tie_break_win, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (cid, name, json.dumps(team_ids), 1 if two_legged else 0, points_for_win, points_for_tie_break_win, now),
        )
        conn.commit()
        return CompetitionConfig(
            id=cid, name=name, team_ids=tuple(team_ids), two_legged=two_legged,
            points_for_win=points_for_win, points_for_tie_break_win=points_for_tie_break_win,
        )

    def get(self, conn: sqlite3.Connection, competition_id: str) -> CompetitionConfig | None:
        row = conn.execute(
            "SELECT id, name, team_ids, two_legged, points_for_win, points_for_tie_break_win FROM competitions WHERE id = ?",
            (competition_id,),
        ).fetchone()
        if row is None:
            return None
        return CompetitionConfig(
            id=row["id"],
            name=row["name"],
            team_ids=tuple(json.loads(row["team_ids"])),
            two_legged=bool(row["two_legged"]),
            points_for_win=row["points_for_win"],
            points_for_tie_break_win=row["points_for_tie_break_win"],
        )


# ---------- MatchRepository ----------


_MATCH_COLS = "id, competition_id, home_team_id, away_team_id, home_score, away_score, status, elapsed_seconds, events_json, stage, date"


class MatchRepository:
    """CRUD for matches. The event log is stored as JSON in insertion order."""

    def __init__(self) -> None:
        self._teams = TeamRepository()

    def _row_to_match(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Match:
        home = self._teams.get(conn, row["home_team_id"]) or Team(id=row["home_team_id"], name=row["home_team_id"])
        away = self._teams.get(conn, row["away_team_id"]) or Team(id=row["away_team_id"], name=row["away_team_id"])
        return Match(
            id=row["id"],
            competition_id=row["competition_id"],
            home_team=home,
            away_team=away,
            home_score=row["home_score"],
            away_score=row["away_score"],
            status=MatchStatus(row["status"]),
            elapsed_seconds=row["elapsed_seconds"],
            events=[MatchEvent.from_dict(e) for e in json.loads(row["events_json"] or "[]")],
            stage=row["stage"],
            date=_parse_datetime(row["date"]),
        )

    def create(self, conn: sqlite3.Connection, match: Match, commit: bool = True) -> Match:
        conn.execute(
            f"INSERT INTO matches ({_MATCH_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                match.id, match.competition_id, match.home_team.id, match.away_team.id,
                match.home_score, match.away_score, match.status.value, match.elapsed_seconds,
                json.dumps([e.to_dict() for e in match.events]), match.stage,
                match.date.isoformat() if match.date else None,
            ),
        )
        if commit:
            conn.commit()
        return match

    def replace_for_competition(self, conn: sqlite3.Connection, competition_id: str, matches: list[Match]) -> None:
        """Drop the competition's fixtures and insert the new ones in one transaction."""
        conn.execute("DELETE FROM matches WHERE competition_id = ?", (competition_id,))
        for m in matches:
            self.create(conn, m, commit=False)
        conn.commit()

    def get(self, conn: sqlite3.Connection, match_id: str) -> Match | None:
        row = conn.execute(f"SELECT {_MATCH_COLS} FROM matches WHERE id = ?", (match_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_match(conn, row)

    def list_by_competition(self, conn: sqlite3.Connection, competition_id: str) -> list[Match]:
        rows = conn.execute(
            f"SELECT {_MATCH_COLS} FROM matches WHERE competition_id = ? ORDER BY date, rowid",
            (competition_id,),
        ).fetchall()
        return [self._row_to_match(conn, r) for r in rows]

    def save_state(self, conn: sqlite3.Connection, match: Match) -> None:
        """Persist live state: score, elapsed time, event log and status."""
        conn.execute(
            "UPDATE matches SET home_score = ?, away_score = ?, status = ?, elapsed_seconds = ?, events_json = ? WHERE id = ?",
            (
                match.home_score, match.away_score, match.status.value, match.elapsed_seconds,
                json.dumps([e.to_dict() for e in match.events]), match.id,
            ),
        )
        conn.commit()

    def update_status(self, conn: sqlite3.Connection, match_id: str, status: MatchStatus) -> None:
        conn.execute("UPDATE matches SET status = ? WHERE id = ?", (status.value, match_id))
        conn.commit()

    def reset_to_not_started(self, conn: sqlite3.Connection, match_id: str) -> None:
        """Reset match to Not Started. Clears scores, clock and event log."""
        conn.execute(
            "UPDATE matches SET status = ?, home_score = 0, away_score = 0, elapsed_seconds = 0, events_json = '[]' WHERE id = ?",
            (MatchStatus.NOT_STARTED.value, match_id),
        )
        conn.commit()


# ---------- SanctionRepository ----------


def _target_columns(target: SanctionTarget) -> tuple[str, str]:
    if isinstance(target, TargetTeam):
        return "team", target.team_id
    if isinstance(target, TargetPlayer):
        return "player", target.player_id
    raise TypeError(f"Unknown sanction target: {target!r}")


class SanctionRepository:
    """CRUD for sanctions. The tagged target is stored as (target_kind, target_id)."""

    def create(
        self,
        conn: sqlite3.Connection,
        competition_id: str,
        target: SanctionTarget,
        reason: str,
        details: str = "",
        date: datetime | None = None,
        id: str | None = None,
    ) -> Sanction:
        sid = id or str(uuid.uuid4())
        when = date or datetime.now(timezone.utc)
        kind, target_id = _target_columns(target)
        conn.execute(
            "INSERT INTO sanctions (id, competition_id, target_kind, target_id, reason, details, date) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (sid, competition_id, kind, target_id, reason, details, when.isoformat()),
        )
        conn.commit()
        return Sanction(id=sid, competition_id=competition_id, target=target, reason=reason, details=details, date=when)

    def list_by_competition(self, conn: sqlite3.Connection, competition_id: str) -> list[Sanction]:
        rows = conn.execute(
            "SELECT id, competition_id, target_kind, target_id, reason, details, date FROM sanctions WHERE competition_id = ? ORDER BY date, id",
            (competition_id,),
        ).fetchall()
        out: list[Sanction] = []
        for r in rows:
            kind = r["target_kind"]
            target = target_from_dict({"kind": kind, f"{kind}_id": r["target_id"]})
            out.append(Sanction(
                id=r["id"],
                competition_id=r["competition_id"],
                target=target,
                reason=r["reason"],
                details=r["details"],
                date=_parse_datetime(r["date"]),
            ))
        return out

    def delete(self, conn: sqlite3.Connection, sanction_id: str) -> None:
        conn.execute("DELETE FROM sanctions WHERE id = ?", (sanction_id,))
        conn.commit()
