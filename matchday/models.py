"""
Data models for the matchday backend.
Domain objects only, no persistence or API logic.

Competition-centric architecture: a competition owns an ordered list of teams;
the schedule turns that list into matches; matches carry an append-only event
log from which the score is derived.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Union

from matchday.config import DEFAULT_POINTS_FOR_TIE_BREAK_WIN, DEFAULT_POINTS_FOR_WIN


# ---------- Match status (state machine) ----------
class MatchStatus(str, Enum):
    """Match lifecycle: not started → in progress → finished."""
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    FINISHED = "Finished"


# ---------- Match event type ----------
class MatchEventType(str, Enum):
    GOAL = "GOAL"
    YELLOW_CARD = "YELLOW_CARD"
    RED_CARD = "RED_CARD"
    SUBSTITUTION = "SUBSTITUTION"


# ---------- Team ----------
@dataclass(frozen=True)
class Team:
    """A club taking part in competitions. Immutable from the engine's perspective."""
    id: str
    name: str
    logo_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "logo_url": self.logo_url}


# ---------- Player ----------
@dataclass(frozen=True)
class Player:
    """
    A registered player. A player belongs to exactly one team at any time;
    the engine only uses team_id to validate events.
    """
    id: str
    team_id: str
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "team_id": self.team_id, "name": self.name}


class Roster:
    """Player id -> team id lookup used to validate match events."""

    def __init__(self, players: Iterable[Player] = ()) -> None:
        self._team_by_player: dict[str, str] = {}
        self._names: dict[str, str] = {}
        for p in players:
            self.add(p)

    def add(self, player: Player) -> None:
        self._team_by_player[player.id] = player.team_id
        self._names[player.id] = player.name

    def belongs_to(self, player_id: str | None, team_id: str) -> bool:
        if not player_id:
            return False
        return self._team_by_player.get(player_id) == team_id

    def name_of(self, player_id: str) -> str:
        return self._names.get(player_id) or player_id

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._team_by_player

    def __len__(self) -> int:
        return len(self._team_by_player)


# ---------- MatchEvent ----------
@dataclass(frozen=True)
class MatchEvent:
    """
    One entry in a match's event log.
    minute is fixed when the event is recorded (floor(elapsed_seconds / 60)).
    secondary_player_id is the player coming on for SUBSTITUTION, None otherwise.
    """
    id: str
    type: MatchEventType
    minute: int
    team_id: str
    primary_player_id: str
    secondary_player_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "minute": self.minute,
            "team_id": self.team_id,
            "primary_player_id": self.primary_player_id,
        }
        if self.secondary_player_id is not None:
            d["secondary_player_id"] = self.secondary_player_id
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MatchEvent:
        return cls(
            id=d["id"],
            type=MatchEventType(d["type"]),
            minute=int(d["minute"]),
            team_id=d["team_id"],
            primary_player_id=d["primary_player_id"],
            secondary_player_id=d.get("secondary_player_id"),
        )


# ---------- Match ----------
@dataclass
class Match:
    """
    A fixture between two teams within a competition.
    Created NotStarted with zero score by the fixture builder; the live engine
    mutates score, elapsed_seconds and events while it is in progress.
    """
    id: str
    competition_id: str
    home_team: Team
    away_team: Team
    home_score: int = 0
    away_score: int = 0
    status: MatchStatus = MatchStatus.NOT_STARTED
    elapsed_seconds: int = 0
    events: list[MatchEvent] = field(default_factory=list)
    stage: str | None = None  # e.g. "Round 3"
    date: datetime | None = None

    def team_ids(self) -> tuple[str, str]:
        return (self.home_team.id, self.away_team.id)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "competition_id": self.competition_id,
            "home_team": self.home_team.to_dict(),
            "away_team": self.away_team.to_dict(),
            "home_score": self.home_score,
            "away_score": self.away_score,
            "status": self.status.value,
            "elapsed_seconds": self.elapsed_seconds,
            "events": [e.to_dict() for e in self.events],
        }
        if self.stage is not None:
            d["stage"] = self.stage
        if self.date is not None:
            d["date"] = self.date.isoformat()
        return d


# ---------- Competition ----------
@dataclass(frozen=True)
class CompetitionConfig:
    """
    Read-only competition settings consumed by scheduling and standings.
    team_ids order defines the schedule.
    """
    id: str
    team_ids: tuple[str, ...]
    name: str = ""
    two_legged: bool = False
    points_for_win: int = DEFAULT_POINTS_FOR_WIN
    points_for_tie_break_win: int = DEFAULT_POINTS_FOR_TIE_BREAK_WIN

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "team_ids": list(self.team_ids),
            "two_legged": self.two_legged,
            "points_for_win": self.points_for_win,
            "points_for_tie_break_win": self.points_for_tie_break_win,
        }


# ---------- Standing (derived, never persisted) ----------
@dataclass
class Standing:
    team_id: str
    team_name: str = ""
    logo_url: str = ""
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "logo_url": self.logo_url,
            "played": self.played,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "points": self.points,
        }


# ---------- Sanction ----------
@dataclass(frozen=True)
class TargetTeam:
    team_id: str


@dataclass(frozen=True)
class TargetPlayer:
    player_id: str


SanctionTarget = Union[TargetTeam, TargetPlayer]


def target_to_dict(target: SanctionTarget) -> dict[str, str]:
    if isinstance(target, TargetTeam):
        return {"kind": "team", "team_id": target.team_id}
    if isinstance(target, TargetPlayer):
        return {"kind": "player", "player_id": target.player_id}
    raise TypeError(f"Unknown sanction target: {target!r}")


def target_from_dict(d: dict[str, Any]) -> SanctionTarget:
    """Inverse of target_to_dict. Raises ValueError for an unknown kind or a missing id."""
    kind = d.get("kind")
    if kind == "team" and d.get("team_id"):
        return TargetTeam(team_id=d["team_id"])
    if kind == "player" and d.get("player_id"):
        return TargetPlayer(player_id=d["player_id"])
    raise ValueError(f"Invalid sanction target: {d!r}")


@dataclass(frozen=True)
class Sanction:
    """
    Disciplinary decision within a competition, aimed at either a team or a
    player (never both).
    """
    id: str
    competition_id: str
    target: SanctionTarget
    reason: str
    details: str  # e.g. "2 match suspension"
    date: datetime

    def applies_to_team(self, team_id: str, roster: Roster | None = None) -> bool:
        """True if aimed at the team, or at one of its players when a roster is given."""
        if isinstance(self.target, TargetTeam):
            return self.target.team_id == team_id
        return roster is not None and roster.belongs_to(self.target.player_id, team_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "target": target_to_dict(self.target),
            "reason": self.reason,
            "details": self.details,
            "date": self.date.isoformat(),
        }


# ---------- Player statistics (derived) ----------
@dataclass
class PlayerStatLine:
    player_id: str
    team_id: str
    player_name: str = ""
    goals: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    substitutions_in: int = 0
    substitutions_out: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "player_name": self.player_name,
            "team_id": self.team_id,
            "goals": self.goals,
            "yellow_cards": self.yellow_cards,
            "red_cards": self.red_cards,
            "substitutions_in": self.substitutions_in,
            "substitutions_out": self.substitutions_out,
        }
