"""
Live match engine: the clock-driven state machine behind the match console.

One engine per match. It owns the match clock (a cancellable asyncio task) and
the append-only event log; the score is kept equal to the number of GOAL events
per side. Every mutation is applied under the engine's lock and then emitted as
a MatchSnapshot. The engine never decides match status: starting and finishing
a match are explicit calls on the competition service.
"""
from __future__ import annotations

import logging
import threading
import uuid
from typing import Awaitable, Callable

from matchday import config
from matchday.models import Match, MatchEvent, MatchEventType, MatchStatus, Roster

from .clock import MatchClock
from .emitter import SnapshotEmitter, Subscriber
from .schemas import MatchSnapshot

logger = logging.getLogger(__name__)


# ---------- Exceptions ----------


class EventValidationError(ValueError):
    """Event rejected: wrong team, missing player, or invalid substitution."""


class EventNotFoundError(LookupError):
    """No event with that id in the match's log."""


class ClockStateError(RuntimeError):
    """Clock operation not valid in the current state (e.g. resume before start)."""


class EngineClosedError(RuntimeError):
    """Engine was closed; it no longer accepts operations."""


def _new_event_id() -> str:
    return f"evt-{uuid.uuid4().hex[:12]}"


# ---------- LiveMatchEngine ----------


class LiveMatchEngine:
    """
    Per-match live state: elapsed time, running clock, score and event log.
    Operations return the snapshot they emitted.
    """

    def __init__(
        self,
        match: Match,
        roster: Roster,
        *,
        clock_interval: float | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        id_factory: Callable[[], str] | None = None,
        emitter: SnapshotEmitter | None = None,
    ) -> None:
        self.match = match
        self.roster = roster
        self.emitter = emitter or SnapshotEmitter()
        self._lock = threading.RLock()
        self._id_factory = id_factory or _new_event_id
        interval = config.CLOCK_INTERVAL_SECONDS if clock_interval is None else clock_interval
        self._clock = MatchClock(self._on_tick, interval=interval, sleep=sleep, name=f"clock-{match.id}")
        # A match restored with time on the clock counts as started
        self._started = match.elapsed_seconds > 0
        self._closed = False
        self._sequence = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def match_id(self) -> str:
        return self.match.id

    @property
    def elapsed_seconds(self) -> int:
        return self.match.elapsed_seconds

    @property
    def clock_running(self) -> bool:
        return self._clock.running

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def home_score(self) -> int:
        return self.match.home_score

    @property
    def away_score(self) -> int:
        return self.match.away_score

    @property
    def events(self) -> tuple[MatchEvent, ...]:
        return tuple(self.match.events)

    def snapshot(self, reason: str = "snapshot") -> MatchSnapshot:
        with self._lock:
            return self._snapshot(reason)

    def timeline(self) -> list[MatchEvent]:
        """Events for display: latest minute first. Storage order is untouched."""
        with self._lock:
            return sorted(self.match.events, key=lambda e: e.minute, reverse=True)

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        return self.emitter.subscribe(fn)

    # ------------------------------------------------------------------
    # Clock controls
    # ------------------------------------------------------------------
    def start(self) -> MatchSnapshot:
        """Start ticking from the current elapsed time. No-op if already running."""
        with self._lock:
            self._ensure_open()
            return self._run_clock("start")

    def pause(self) -> MatchSnapshot:
        """Stop ticking; elapsed time is kept."""
        with self._lock:
            self._ensure_open()
            if self._clock.running:
                self._clock.stop()
                logger.info("Clock paused for match %s at %ss", self.match.id, self.match.elapsed_seconds)
            return self._publish("pause")

    def resume(self) -> MatchSnapshot:
        """Same as start, but only for a clock that has been started before."""
        with self._lock:
            self._ensure_open()
            if not self._started:
                raise ClockStateError(f"Cannot resume match {self.match.id}: clock was never started")
            return self._run_clock("resume")

    def _run_clock(self, reason: str) -> MatchSnapshot:
        if not self._clock.running:
            self._clock.start()
            self._started = True
            logger.info("Clock %s for match %s at %ss", reason, self.match.id, self.match.elapsed_seconds)
        return self._publish(reason)

    def reset_clock(self) -> MatchSnapshot:
        """Hard reset: stop the clock, zero elapsed time, clear the event log and both scores."""
        with self._lock:
            self._ensure_open()
            self._clock.stop()
            self.match.elapsed_seconds = 0
            self.match.events = []
            self.match.home_score = 0
            self.match.away_score = 0
            self._started = False
            logger.info("Clock reset for match %s", self.match.id)
            return self._publish("reset_clock")

    def reset_score(self) -> MatchSnapshot:
        """Zero both scores and drop GOAL events; cards and substitutions stay."""
        with self._lock:
            self._ensure_open()
            self.match.home_score = 0
            self.match.away_score = 0
            self.match.events = [e for e in self.match.events if e.type != MatchEventType.GOAL]
            logger.info("Score reset for match %s", self.match.id)
            return self._publish("reset_score")

    def set_status(self, status: MatchStatus) -> MatchSnapshot:
        """Reflect a status change decided by the competition service. The clock is untouched."""
        with self._lock:
            self._ensure_open()
            self.match.status = status
            return self._publish("status")

    def _on_tick(self, generation: int) -> None:
        with self._lock:
            # A tick queued before pause/reset/close belongs to a dead generation
            if self._closed or not self._clock.is_current(generation):
                return
            self.match.elapsed_seconds += 1
            self._publish("tick")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def add_event(
        self,
        event_type: MatchEventType | str,
        team_id: str,
        primary_player_id: str | None,
        secondary_player_id: str | None = None,
    ) -> MatchSnapshot:
        """
        Record an event at the current minute. GOAL increments the team's score.

        Raises:
            EventValidationError: team not in this match, player missing or not on
                the team, substitution without two distinct players of the team.
        """
        with self._lock:
            self._ensure_open()
            etype = self._coerce_type(event_type)
            self._validate(etype, team_id, primary_player_id, secondary_player_id)
            event = MatchEvent(
                id=self._id_factory(),
                type=etype,
                minute=self.match.elapsed_seconds // 60,
                team_id=team_id,
                primary_player_id=primary_player_id,  # type: ignore[arg-type]
                secondary_player_id=secondary_player_id if etype == MatchEventType.SUBSTITUTION else None,
            )
            self.match.events.append(event)
            if etype == MatchEventType.GOAL:
                if team_id == self.match.home_team.id:
                    self.match.home_score += 1
                else:
                    self.match.away_score += 1
            logger.info("Match %s: %s for %s at %d'", self.match.id, etype.value, team_id, event.minute)
            return self._publish("add_event")

    def remove_event(self, event_id: str) -> MatchSnapshot:
        """
        Remove an event by id. Removing a GOAL decrements that side (never below 0).

        Raises:
            EventNotFoundError: no event with this id.
        """
        with self._lock:
            self._ensure_open()
            event = next((e for e in self.match.events if e.id == event_id), None)
            if event is None:
                raise EventNotFoundError(f"Event not found: {event_id}")
            if event.type == MatchEventType.GOAL:
                if event.team_id == self.match.home_team.id:
                    self.match.home_score = max(0, self.match.home_score - 1)
                else:
                    self.match.away_score = max(0, self.match.away_score - 1)
            self.match.events = [e for e in self.match.events if e.id != event_id]
            logger.info("Match %s: removed %s %s", self.match.id, event.type.value, event_id)
            return self._publish("remove_event")

    def _coerce_type(self, event_type: MatchEventType | str) -> MatchEventType:
        try:
            return MatchEventType(event_type)
        except ValueError as e:
            raise EventValidationError(f"Unknown event type: {event_type!r}") from e

    def _validate(
        self,
        etype: MatchEventType,
        team_id: str,
        primary_player_id: str | None,
        secondary_player_id: str | None,
    ) -> None:
        if team_id not in self.match.team_ids():
            raise EventValidationError(f"Team {team_id} is not playing in match {self.match.id}")
        if not primary_player_id:
            raise EventValidationError("Please select the player(s).")
        if not self.roster.belongs_to(primary_player_id, team_id):
            raise EventValidationError(f"Player {primary_player_id} is not registered with team {team_id}")
        if etype == MatchEventType.SUBSTITUTION:
            if not secondary_player_id:
                raise EventValidationError("Please select the player(s).")
            if secondary_player_id == primary_player_id:
                raise EventValidationError("Players cannot substitute themselves.")
            if not self.roster.belongs_to(secondary_player_id, team_id):
                raise EventValidationError(f"Player {secondary_player_id} is not registered with team {team_id}")
        elif secondary_player_id:
            raise EventValidationError(f"{etype.value} takes a single player")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Stop the clock for good and release subscribers. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._clock.stop()
            self._closed = True
            self.emitter.close()
            logger.debug("Engine closed for match %s", self.match.id)

    async def __aenter__(self) -> LiveMatchEngine:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise EngineClosedError(f"Live engine for match {self.match.id} is closed")

    def _snapshot(self, reason: str) -> MatchSnapshot:
        return MatchSnapshot.from_match(
            self.match, clock_running=self._clock.running, sequence=self._sequence, reason=reason
        )

    def _publish(self, reason: str) -> MatchSnapshot:
        self._sequence += 1
        snap = self._snapshot(reason)
        self.emitter.emit(snap)
        return snap
