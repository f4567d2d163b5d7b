"""
Snapshot emitter: fans out MatchSnapshots from one engine to any number of
subscribers (persistence writer, WebSocket connections, tests).

Subscribers are plain callables; a failing subscriber is logged and skipped so
it can never leave the engine half-updated. Async consumers use stream().
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable

from .schemas import MatchSnapshot

logger = logging.getLogger(__name__)

Subscriber = Callable[[MatchSnapshot], None]


class SnapshotEmitter:
    """Observer list for one match. Not shared between matches."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._queues: list[asyncio.Queue] = []
        self._closed = False

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register fn; returns a callable that unsubscribes it."""
        self._subscribers.append(fn)

        def _unsubscribe() -> None:
            self.unsubscribe(fn)

        return _unsubscribe

    def unsubscribe(self, fn: Subscriber) -> None:
        if fn in self._subscribers:
            self._subscribers.remove(fn)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers) + len(self._queues)

    def emit(self, snapshot: MatchSnapshot) -> None:
        """Deliver snapshot to every subscriber, in subscription order."""
        for fn in self._subscribers[:]:
            try:
                fn(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber %r failed for match %s", fn, snapshot.match_id)
        for q in self._queues[:]:
            q.put_nowait(snapshot)

    async def stream(self, initial: MatchSnapshot | None = None) -> AsyncIterator[MatchSnapshot]:
        """
        Async generator of snapshots, starting with initial if given.
        Ends when the emitter is closed.
        """
        q: asyncio.Queue = asyncio.Queue()
        if initial is not None:
            q.put_nowait(initial)
        if self._closed:
            q.put_nowait(None)
        self._queues.append(q)
        try:
            while True:
                snapshot = await q.get()
                if snapshot is None:
                    return
                yield snapshot
        finally:
            if q in self._queues:
                self._queues.remove(q)

    def close(self) -> None:
        """Drop all subscribers and end open streams."""
        self._closed = True
        self._subscribers.clear()
        for q in self._queues[:]:
            q.put_nowait(None)
