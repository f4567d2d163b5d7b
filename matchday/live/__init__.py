"""
Live Match Engine: clock-driven, event-sourced match state with snapshot
emission for persistence and realtime feeds.
"""
from .schemas import MatchSnapshot, format_clock
from .clock import MatchClock
from .emitter import SnapshotEmitter, Subscriber
from .engine import (
    LiveMatchEngine,
    EventValidationError,
    EventNotFoundError,
    ClockStateError,
    EngineClosedError,
)
from .registry import LiveMatchRegistry

__all__ = [
    "MatchSnapshot",
    "format_clock",
    "MatchClock",
    "SnapshotEmitter",
    "Subscriber",
    "LiveMatchEngine",
    "EventValidationError",
    "EventNotFoundError",
    "ClockStateError",
    "EngineClosedError",
    "LiveMatchRegistry",
]
