"""
Competition-centric service: match status state machine, schedule generation,
standings and player statistics over persisted data.
Generate schedule: round-robin fixtures replace the competition's old ones.
Finish match: explicit caller decision, never inferred from the clock.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from matchday.models import (
    CompetitionConfig,
    Match,
    MatchStatus,
    PlayerStatLine,
    Roster,
    Standing,
    Team,
)
from matchday.persistence.repositories import (
    CompetitionRepository,
    MatchRepository,
    PlayerRepository,
    TeamRepository,
)
from matchday.services.player_stats import aggregate_player_stats
from matchday.services.scheduling import Pairing, build_fixtures, generate_schedule
from matchday.services.standings import compute_standings

logger = logging.getLogger(__name__)

# ---------- Exceptions ----------


class MatchTransitionError(ValueError):
    """Invalid match status transition (e.g. Not Started -> Finished)."""


class CompetitionNotFoundError(LookupError):
    """No competition with that id."""


class MatchNotFoundError(LookupError):
    """No match with that id."""


# ---------- Valid transitions ----------

_VALID_TRANSITIONS: dict[MatchStatus, set[MatchStatus]] = {
    MatchStatus.NOT_STARTED: {MatchStatus.IN_PROGRESS},
    MatchStatus.IN_PROGRESS: {MatchStatus.FINISHED},
    MatchStatus.FINISHED: set(),
}


def can_transition(current: MatchStatus, new_status: MatchStatus) -> bool:
    return new_status in _VALID_TRANSITIONS.get(current, set())


# ---------- CompetitionService ----------


class CompetitionService:
    """
    Domain logic for competitions and their matches: status transitions, guards,
    scheduling, standings. Persistence is delegated to repositories.
    """

    def __init__(self) -> None:
        self._competition_repo = CompetitionRepository()
        self._match_repo = MatchRepository()
        self._team_repo = TeamRepository()
        self._player_repo = PlayerRepository()

    # ---------- Lookups ----------

    def get_competition(self, conn: sqlite3.Connection, competition_id: str) -> CompetitionConfig:
        competition = self._competition_repo.get(conn, competition_id)
        if competition is None:
            raise CompetitionNotFoundError(f"Competition not found: {competition_id}")
        return competition

    def get_match(self, conn: sqlite3.Connection, match_id: str) -> Match:
        match = self._match_repo.get(conn, match_id)
        if match is None:
            raise MatchNotFoundError(f"Match not found: {match_id}")
        return match

    def find_match(self, conn: sqlite3.Connection, match_id: str) -> Match | None:
        return self._match_repo.get(conn, match_id)

    def competition_matches(self, conn: sqlite3.Connection, competition_id: str) -> list[Match]:
        """Stored fixtures in date order. Raises CompetitionNotFoundError for unknown ids."""
        competition = self.get_competition(conn, competition_id)
        return self._match_repo.list_by_competition(conn, competition.id)

    def competition_teams(self, conn: sqlite3.Connection, competition: CompetitionConfig) -> list[Team]:
        """Teams in competition order; ids without a team record are skipped."""
        by_id = self._team_repo.get_many(conn, competition.team_ids)
        return [by_id[tid] for tid in competition.team_ids if tid in by_id]

    def match_roster(self, conn: sqlite3.Connection, match: Match) -> Roster:
        """Players of both sides, for validating live events."""
        return Roster(self._player_repo.list_by_teams(conn, match.team_ids()))

    def team_roster(self, conn: sqlite3.Connection, team_id: str) -> Roster:
        return Roster(self._player_repo.list_by_team(conn, team_id))

    # ---------- Match status transitions ----------

    def transition_match_status(self, conn: sqlite3.Connection, match_id: str, new_status: MatchStatus) -> Match:
        """
        Transition match to new_status if valid.
        Valid: Not Started -> In Progress -> Finished.
        """
        match = self.get_match(conn, match_id)
        current = match.status
        if not can_transition(current, new_status):
            allowed = sorted(s.value for s in _VALID_TRANSITIONS.get(current, set()))
            raise MatchTransitionError(
                f"Invalid transition: {current.value} -> {new_status.value}. Allowed from {current.value}: {allowed}"
            )
        self._match_repo.update_status(conn, match_id, new_status)
        match.status = new_status
        logger.info("Match %s: %s -> %s", match_id, current.value, new_status.value)
        return match

    def start_match(self, conn: sqlite3.Connection, match_id: str) -> Match:
        """Not Started -> In Progress. Already in progress is returned as is."""
        match = self.get_match(conn, match_id)
        if match.status == MatchStatus.IN_PROGRESS:
            return match
        return self.transition_match_status(conn, match_id, MatchStatus.IN_PROGRESS)

    def finish_match(self, conn: sqlite3.Connection, match_id: str) -> Match:
        """In Progress -> Finished. The result then counts towards standings."""
        return self.transition_match_status(conn, match_id, MatchStatus.FINISHED)

    def restart_match(self, conn: sqlite3.Connection, match_id: str) -> Match:
        """Reset a match to Not Started with empty clock, score and event log."""
        self.get_match(conn, match_id)
        self._match_repo.reset_to_not_started(conn, match_id)
        logger.info("Match %s restarted", match_id)
        return self.get_match(conn, match_id)

    def save_live_state(self, conn: sqlite3.Connection, match: Match) -> None:
        self._match_repo.save_state(conn, match)

    # ---------- Scheduling ----------

    def competition_schedule(
        self, conn: sqlite3.Connection, competition_id: str
    ) -> list[list[Pairing[Team]]]:
        """Round-robin rounds for the competition's current team order (byes included)."""
        competition = self.get_competition(conn, competition_id)
        teams = self.competition_teams(conn, competition)
        return generate_schedule(teams, competition.two_legged)

    def generate_competition_schedule(
        self,
        conn: sqlite3.Connection,
        competition_id: str,
        start_date: datetime | None = None,
    ) -> list[Match]:
        """
        Generate round-robin fixtures and persist them, replacing the competition's
        previous fixtures. Fewer than 2 teams clears them and yields no fixtures.
        """
        competition = self.get_competition(conn, competition_id)
        teams = self.competition_teams(conn, competition)
        schedule = generate_schedule(teams, competition.two_legged)
        fixtures = build_fixtures(competition.id, schedule, start_date=start_date)
        self._match_repo.replace_for_competition(conn, competition.id, fixtures)
        logger.info(
            "Generated %d fixtures over %d rounds for competition %s",
            len(fixtures), len(schedule), competition.id,
        )
        return fixtures

    # ---------- Tables ----------

    def standings(self, conn: sqlite3.Connection, competition_id: str) -> list[Standing]:
        competition = self.get_competition(conn, competition_id)
        teams = self._team_repo.get_many(conn, competition.team_ids)
        matches = self._match_repo.list_by_competition(conn, competition.id)
        return compute_standings(competition, matches, teams=teams)

    def player_stats(self, conn: sqlite3.Connection, competition_id: str) -> list[PlayerStatLine]:
        competition = self.get_competition(conn, competition_id)
        matches = self._match_repo.list_by_competition(conn, competition.id)
        roster = Roster(self._player_repo.list_by_teams(conn, competition.team_ids))
        return aggregate_player_stats(matches, roster)
