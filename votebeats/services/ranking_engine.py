"""
Ranking Engine - dual-mode ranked-choice queue for an event.

Attendee mutations only mark the event stale; the refresh scheduler
recomputes (prune -> tally -> score -> hidden gems -> activation) off the
request path and reads merge the DJ's manual locks on top of the cached
snapshot.
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from votebeats.config import settings
from votebeats.db.database import SessionLocal
from votebeats.db.models import SongRequest
from votebeats.exceptions import AlreadyRanked
from votebeats.ranking.overrides import apply_manual_locks
from votebeats.ranking.snapshot import build_snapshot
from votebeats.ranking.types import (
    DualRankingSnapshot, ManualLock, RankingConfig, RankingInputs, ScoreEntry
)
from votebeats.services.rankable_pool import RankablePool, rankable_pool
from votebeats.services.ranking_store import AttendeeRankingStore, ranking_store
from votebeats.services.snapshot_cache import RefreshScheduler, SnapshotCache

logger = logging.getLogger(__name__)


class RankingEngine:
    """Entry point for every ranked-choice operation"""

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        store: Optional[AttendeeRankingStore] = None,
        pool: Optional[RankablePool] = None,
        cache: Optional[SnapshotCache] = None,
        refresh_interval: Optional[float] = None
    ):
        self.session_factory = session_factory or SessionLocal
        self.pool = pool or rankable_pool
        self.store = store or ranking_store
        self.cache = cache or SnapshotCache()
        self.scheduler = RefreshScheduler(
            self.cache,
            self.compute_snapshot,
            refresh_interval or settings.RANKING_REFRESH_INTERVAL_SEC
        )

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(settings.RECOMPUTE_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.1, max=2),
        retry=retry_if_exception_type(OperationalError),
        reraise=True
    )
    def _read_inputs(self, db: Session, event_id: str) -> RankingInputs:
        try:
            return self.store.read_inputs(db, event_id)
        except OperationalError:
            db.rollback()
            raise

    def compute_snapshot(self, event_id: str) -> DualRankingSnapshot:
        """Full recompute for one event in its own session (runs in a worker thread)"""
        db = self.session_factory()
        try:
            config = self.pool.get_config(db, event_id)
            self.store.prune_unrankable(db, event_id)
            inputs = self._read_inputs(db, event_id)
            return build_snapshot(inputs, config)
        finally:
            db.close()

    def _read_view(self, db: Session, snapshot: DualRankingSnapshot, config: RankingConfig) -> DualRankingSnapshot:
        """
        Read-time view of a cached snapshot: live manual locks applied and song
        details attached. The cached snapshot itself stays id-only.
        """
        details = self.pool.list_request_details(db, snapshot.event_id)
        locks = [
            ManualLock(request_id=d.request_id, manual_order=d.manual_order, set_at=d.manual_order_set_at)
            for d in details.values()
            if d.manual_order is not None
        ]

        def display(entries: List[ScoreEntry]) -> List[ScoreEntry]:
            shown = []
            for entry in apply_manual_locks(entries, locks):
                info = details.get(entry.request_id)
                if info is not None:
                    entry = entry.model_copy(update={
                        "song_title": info.song_title,
                        "artist_name": info.artist_name,
                        "status": info.status,
                        "request_created_at": info.created_at
                    })
                shown.append(entry)
            return shown

        hidden_gems = []
        for gem in snapshot.hidden_gems:
            info = details.get(gem.request_id)
            if info is not None:
                gem = gem.model_copy(update={
                    "song_title": info.song_title,
                    "artist_name": info.artist_name,
                    "status": info.status
                })
            hidden_gems.append(gem)

        return snapshot.model_copy(update={
            "primary_mode": config.primary_mode,
            "consensus_scores": display(snapshot.consensus_scores),
            "discovery_scores": display(snapshot.discovery_scores),
            "hidden_gems": hidden_gems,
        })

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_dual_ranking_scores(self, db: Session, event_id: str) -> DualRankingSnapshot:
        """Cached snapshot with live manual locks applied to both orderings"""
        config = self.pool.get_config(db, event_id)
        snapshot = await self.scheduler.latest(event_id)
        return self._read_view(db, snapshot, config)

    async def refresh_rankings(self, db: Session, event_id: str) -> DualRankingSnapshot:
        """Recompute (or join the recompute in flight) and return the result"""
        config = self.pool.get_config(db, event_id)
        snapshot = await self.scheduler.refresh(event_id)
        return self._read_view(db, snapshot, config)

    async def get_primary_scores(
        self,
        db: Session,
        event_id: str,
        attendee_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Attendee view: the primary-mode order, with the attendee's own positions"""
        snapshot = await self.get_dual_ranking_scores(db, event_id)
        mine = {}
        if attendee_id:
            mine = {
                request_id: position
                for position, request_id in enumerate(self.store.get(db, event_id, attendee_id), start=1)
            }
        scores = [
            entry.model_copy(update={"my_ranking_position": mine.get(entry.request_id)})
            for entry in snapshot.primary_scores
        ]
        return {
            "event_id": event_id,
            "primary_mode": snapshot.primary_mode,
            "activated": snapshot.activated,
            "total_participants": snapshot.total_participants,
            "min_participants_for_activation": snapshot.min_participants_for_activation,
            "generated_at": snapshot.generated_at,
            "scores": scores
        }

    def get_my_rankings(self, db: Session, event_id: str, attendee_id: str) -> Dict[str, Any]:
        config = self.pool.get_config(db, event_id)
        request_ids = self.store.get(db, event_id, attendee_id)
        requests = {
            r.id: r for r in db.query(SongRequest).filter(SongRequest.id.in_(request_ids)).all()
        } if request_ids else {}
        return {
            "rankings": [
                {
                    "request_id": request_id,
                    "position": position,
                    "song_title": requests[request_id].song_title if request_id in requests else None,
                    "artist_name": requests[request_id].artist_name if request_id in requests else None,
                    "status": requests[request_id].status if request_id in requests else None
                }
                for position, request_id in enumerate(request_ids, start=1)
            ],
            "slots_used": len(request_ids),
            "ranking_depth": config.ranking_depth
        }

    def list_rankable(self, db: Session, event_id: str) -> List[Dict[str, Any]]:
        self.pool.get_event(db, event_id)
        return self.pool.list_rankable(db, event_id)

    # ------------------------------------------------------------------
    # Attendee mutations
    # ------------------------------------------------------------------

    def _ranking_summary(self, db: Session, event_id: str, request_ids: List[str]) -> Dict[str, Any]:
        config = self.pool.get_config(db, event_id)
        return {
            "rankings": request_ids,
            "slots_used": len(request_ids),
            "ranking_depth": config.ranking_depth
        }

    def add_to_ranking(
        self,
        db: Session,
        event_id: str,
        attendee_id: str,
        request_id: str,
        position: Optional[int] = None
    ) -> Dict[str, Any]:
        """Add a song; re-adding a ranked song succeeds without changes"""
        try:
            request_ids = self.store.add(db, event_id, attendee_id, request_id, position)
            added = True
            self.cache.mark_stale(event_id)
        except AlreadyRanked:
            request_ids = self.store.get(db, event_id, attendee_id)
            added = False

        result = self._ranking_summary(db, event_id, request_ids)
        result.update({
            "added": added,
            "request_id": request_id,
            "position": request_ids.index(request_id) + 1
        })
        return result

    def remove_from_ranking(
        self,
        db: Session,
        event_id: str,
        request_id: str,
        attendee_id: str
    ) -> Dict[str, Any]:
        self.pool.get_event(db, event_id)
        before = self.store.get(db, event_id, attendee_id)
        request_ids = self.store.remove(db, event_id, attendee_id, request_id)
        removed = request_id in before
        if removed:
            self.cache.mark_stale(event_id)

        result = self._ranking_summary(db, event_id, request_ids)
        result["removed"] = removed
        return result

    def reorder_rankings(
        self,
        db: Session,
        event_id: str,
        attendee_id: str,
        ordered_request_ids: List[str]
    ) -> Dict[str, Any]:
        self.pool.get_event(db, event_id)
        request_ids = self.store.reorder(db, event_id, attendee_id, ordered_request_ids)
        self.cache.mark_stale(event_id)
        return self._ranking_summary(db, event_id, request_ids)

    def replace_rankings(
        self,
        db: Session,
        event_id: str,
        attendee_id: str,
        request_ids: List[str]
    ) -> Dict[str, Any]:
        request_ids = self.store.replace(db, event_id, attendee_id, request_ids)
        self.cache.mark_stale(event_id)
        return self._ranking_summary(db, event_id, request_ids)

    # ------------------------------------------------------------------
    # DJ and request-workflow operations
    # ------------------------------------------------------------------

    def lock_request_position(
        self,
        db: Session,
        event_id: str,
        request_id: str,
        manual_order: Optional[int]
    ) -> Dict[str, Any]:
        """Set or clear a manual lock; visible on the next read, no recompute"""
        return self.pool.set_lock(db, event_id, request_id, manual_order)

    def switch_primary_mode(self, db: Session, event_id: str, mode: str) -> Dict[str, Any]:
        scoring_mode = self.pool.set_primary_mode(db, event_id, mode)
        logger.info(f"Event {event_id} primary scoring mode switched to {scoring_mode.value}")
        return {"event_id": event_id, "primary_mode": scoring_mode}

    def update_request_status(
        self,
        db: Session,
        event_id: str,
        request_id: str,
        status: str
    ) -> Dict[str, Any]:
        """Apply a request status change; leaving the pool prunes it from every ranking"""
        result = self.pool.set_status(db, event_id, request_id, status)
        result["pruned_rankings"] = 0
        if result["left_pool"]:
            result["pruned_rankings"] = self.store.prune_request(db, event_id, request_id)
        if result["previous_status"] != status:
            self.cache.mark_stale(event_id)
        return result

    def discard_event(self, event_id: str) -> None:
        """Event deleted: drop cached state and abandon any recompute in flight"""
        self.scheduler.discard(event_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
