"""
Snapshot Cache and Refresh Scheduler.

Each event moves through stale -> recomputing -> fresh. Reads always get the
last stored snapshot; recomputation runs in a worker thread and at most one
runs per event, later callers awaiting the in-flight task.
"""
import asyncio
import logging
import threading
import time
from contextlib import suppress
from typing import Callable, Dict, List, Optional, Tuple

from votebeats.exceptions import RankingError, RecomputeFailure, UnknownEvent
from votebeats.ranking.types import DualRankingSnapshot, SnapshotStatus

logger = logging.getLogger(__name__)


class SnapshotState:
    """Cache entry for one event"""

    def __init__(self):
        self.status = SnapshotStatus.stale
        self.snapshot: Optional[DualRankingSnapshot] = None
        self.version = 0


class SnapshotCache:
    """
    Per-event snapshot map.

    Guarded by a thread lock: handlers on the event loop mark events stale
    while the recompute worker thread stores finished snapshots.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._states: Dict[str, SnapshotState] = {}

    def _state(self, event_id: str) -> SnapshotState:
        state = self._states.get(event_id)
        if state is None:
            state = SnapshotState()
            self._states[event_id] = state
        return state

    def get(self, event_id: str) -> Optional[DualRankingSnapshot]:
        with self._lock:
            state = self._states.get(event_id)
            return state.snapshot if state else None

    def status(self, event_id: str) -> SnapshotStatus:
        with self._lock:
            state = self._states.get(event_id)
            return state.status if state else SnapshotStatus.stale

    def mark_stale(self, event_id: str) -> None:
        with self._lock:
            state = self._state(event_id)
            state.version += 1
            if state.status == SnapshotStatus.fresh:
                state.status = SnapshotStatus.stale

    def begin(self, event_id: str) -> Tuple[SnapshotState, int]:
        with self._lock:
            state = self._state(event_id)
            state.status = SnapshotStatus.recomputing
            return state, state.version

    def complete(self, event_id: str, state: SnapshotState, version: int, snapshot: DualRankingSnapshot) -> bool:
        """Store a finished snapshot; False if the event was discarded meanwhile"""
        with self._lock:
            if self._states.get(event_id) is not state:
                return False
            state.snapshot = snapshot
            # a mutation during the run leaves the event stale for the next tick
            state.status = SnapshotStatus.fresh if state.version == version else SnapshotStatus.stale
            return True

    def fail(self, event_id: str, state: SnapshotState) -> None:
        with self._lock:
            if self._states.get(event_id) is state:
                state.status = SnapshotStatus.stale

    def discard(self, event_id: str) -> None:
        with self._lock:
            self._states.pop(event_id, None)

    def stale_event_ids(self) -> List[str]:
        with self._lock:
            return [
                event_id for event_id, state in self._states.items()
                if state.status == SnapshotStatus.stale
            ]


class RefreshScheduler:
    """De-duplicated recompute plus the periodic ticker"""

    def __init__(
        self,
        cache: SnapshotCache,
        compute: Callable[[str], DualRankingSnapshot],
        interval: float
    ):
        self.cache = cache
        self.compute = compute
        self.interval = interval
        self._tasks: Dict[str, asyncio.Task] = {}
        self._ticker: Optional[asyncio.Task] = None

    def _forget(self, event_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(event_id) is task:
            del self._tasks[event_id]

    async def refresh(self, event_id: str) -> DualRankingSnapshot:
        """Recompute now, or join the run already in flight for this event"""
        task = self._tasks.get(event_id)
        if task is None:
            task = asyncio.create_task(self._recompute(event_id))
            self._tasks[event_id] = task
            task.add_done_callback(lambda done, key=event_id: self._forget(key, done))
        # shield: a caller giving up must not cancel the run other callers share
        return await asyncio.shield(task)

    async def latest(self, event_id: str) -> DualRankingSnapshot:
        """Last stored snapshot; only an event never computed waits for one"""
        snapshot = self.cache.get(event_id)
        if snapshot is None:
            return await self.refresh(event_id)
        return snapshot

    async def _recompute(self, event_id: str) -> DualRankingSnapshot:
        state, version = self.cache.begin(event_id)
        started = time.monotonic()
        try:
            snapshot = await asyncio.to_thread(self.compute, event_id)
        except UnknownEvent:
            self.cache.discard(event_id)
            raise
        except RankingError:
            self.cache.fail(event_id, state)
            raise
        except Exception as e:
            self.cache.fail(event_id, state)
            logger.error(f"Ranking recompute failed for event {event_id}: {e}", exc_info=True)
            raise RecomputeFailure(f"Ranking recompute failed for event {event_id}") from e

        if self.cache.complete(event_id, state, version, snapshot):
            logger.info(
                f"Recomputed rankings for event {event_id}: "
                f"{len(snapshot.consensus_scores)} songs, "
                f"{snapshot.total_participants} participants, "
                f"{len(snapshot.hidden_gems)} hidden gems "
                f"in {time.monotonic() - started:.3f}s"
            )
        else:
            logger.info(f"Discarded recompute result for removed event {event_id}")
        return snapshot

    async def tick(self) -> int:
        """Refresh every stale event once; returns how many were attempted"""
        event_ids = self.cache.stale_event_ids()
        if event_ids:
            # failures are logged in _recompute; one bad event must not stop the others
            await asyncio.gather(*(self.refresh(e) for e in event_ids), return_exceptions=True)
        return len(event_ids)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Ranking ticker error: {e}", exc_info=True)

    def start(self) -> None:
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.create_task(self._run())
            logger.info(f"Ranking refresh ticker started (every {self.interval}s)")

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        if self._ticker is not None:
            tasks.append(self._ticker)
            self._ticker = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError, Exception):
                await task
        self._tasks.clear()
        logger.info("Ranking refresh ticker stopped")

    def discard(self, event_id: str) -> None:
        """Forget an event; an in-flight run is cancelled and its result dropped"""
        self.cache.discard(event_id)
        task = self._tasks.pop(event_id, None)
        if task is not None:
            task.cancel()
