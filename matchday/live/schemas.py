"""
Snapshot schema for the live match engine.
Immutable copies of a match's live state, emitted after every mutation for
persistence writers and WebSocket feeds.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from matchday.models import Match, MatchEvent, MatchStatus


def format_clock(seconds: int) -> str:
    """Render elapsed seconds as MM:SS (minutes keep counting past 59)."""
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins:02d}:{secs:02d}"


@dataclass(frozen=True)
class MatchSnapshot:
    """
    Live match state at one point in time.
    sequence increases by one per emitted snapshot of the same engine; reason names
    the operation that produced it (tick, start, add_event, ...).
    """
    match_id: str
    competition_id: str
    status: MatchStatus
    home_team_id: str
    away_team_id: str
    home_score: int
    away_score: int
    elapsed_seconds: int
    clock_running: bool
    events: tuple[MatchEvent, ...]
    sequence: int = 0
    reason: str = ""

    @classmethod
    def from_match(cls, match: Match, clock_running: bool = False, sequence: int = 0, reason: str = "stored") -> MatchSnapshot:
        return cls(
            match_id=match.id,
            competition_id=match.competition_id,
            status=match.status,
            home_team_id=match.home_team.id,
            away_team_id=match.away_team.id,
            home_score=match.home_score,
            away_score=match.away_score,
            elapsed_seconds=match.elapsed_seconds,
            clock_running=clock_running,
            events=tuple(match.events),
            sequence=sequence,
            reason=reason,
        )

    @property
    def minute(self) -> int:
        return self.elapsed_seconds // 60

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "competition_id": self.competition_id,
            "status": self.status.value,
            "home_team_id": self.home_team_id,
            "away_team_id": self.away_team_id,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "elapsed_seconds": self.elapsed_seconds,
            "clock": format_clock(self.elapsed_seconds),
            "clock_running": self.clock_running,
            "events": [e.to_dict() for e in self.events],
            "sequence": self.sequence,
            "reason": self.reason,
        }
