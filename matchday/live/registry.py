"""
Process-local registry of live engines: match_id -> LiveMatchEngine.
Concurrency: engines are independent; the registry only guards its own map.
Discarding an engine closes it, so no clock task outlives its match.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from matchday.models import Match, Roster

from .engine import LiveMatchEngine

logger = logging.getLogger(__name__)


class LiveMatchRegistry:
    def __init__(
        self,
        engine_factory: Callable[..., LiveMatchEngine] = LiveMatchEngine,
        on_open: Callable[[LiveMatchEngine], None] | None = None,
    ) -> None:
        self._engine_factory = engine_factory
        self._on_open = on_open
        self._engines: dict[str, LiveMatchEngine] = {}
        self._lock = threading.Lock()

    def get(self, match_id: str) -> LiveMatchEngine | None:
        with self._lock:
            return self._engines.get(match_id)

    def open(self, match: Match, roster: Roster, **engine_kwargs: Any) -> LiveMatchEngine:
        """Return the match's engine, creating it from match/roster on first use (on_open sees new engines)."""
        with self._lock:
            engine = self._engines.get(match.id)
            if engine is None or engine.closed:
                engine = self._engine_factory(match, roster, **engine_kwargs)
                self._engines[match.id] = engine
                if self._on_open is not None:
                    self._on_open(engine)
                logger.info("Opened live engine for match %s", match.id)
            return engine

    def discard(self, match_id: str) -> None:
        """Close and forget the match's engine, if any."""
        with self._lock:
            engine = self._engines.pop(match_id, None)
        if engine is not None:
            engine.close()
            logger.info("Closed live engine for match %s", match_id)

    def close_all(self) -> None:
        with self._lock:
            engines = list(self._engines.values())
            self._engines.clear()
        for engine in engines:
            engine.close()

    def __contains__(self, match_id: object) -> bool:
        with self._lock:
            return match_id in self._engines

    def __len__(self) -> int:
        with self._lock:
            return len(self._engines)
