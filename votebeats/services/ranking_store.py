"""
Attendee Ranking Store - each attendee's ordered Top-N list per event.

Mutations are atomic per (event, attendee): each runs in one transaction that
takes the database write lock for that attendee's rows before reading them, so
two writers for the same attendee (in any process) are serialised and the
depth and position checks always see committed state.
"""
import logging
from collections import defaultdict
from typing import Dict, List, Optional
from sqlalchemy import and_
from sqlalchemy.orm import Session

from votebeats.db.models import Ranking, SongRequest, RANKABLE_STATUSES
from votebeats.exceptions import (
    AlreadyRanked, DepthExceeded, InvalidPermutation, NotRankable
)
from votebeats.ranking.types import RankingInputs
from votebeats.services.rankable_pool import RankablePool, is_rankable_status, rankable_pool

logger = logging.getLogger(__name__)


class AttendeeRankingStore:
    """Per-attendee ranking lists backed by the rankings table"""

    def __init__(self, pool: Optional[RankablePool] = None):
        self.pool = pool or rankable_pool

    def _attendee_filter(self, event_id: str, attendee_id: str):
        return and_(
            Ranking.event_id == event_id,
            Ranking.participant_id == attendee_id
        )

    def _rows(self, db: Session, event_id: str, attendee_id: str) -> List[Ranking]:
        return db.query(Ranking).filter(
            self._attendee_filter(event_id, attendee_id)
        ).order_by(Ranking.position).all()

    def _lock_rows(self, db: Session, event_id: str, attendee_id: str) -> List[Ranking]:
        """
        Start the attendee's write transaction and return their rows, best first.

        The no-op UPDATE is the first write of the transaction, so SQLite takes
        its write lock before the rows are read; server databases also hold the
        rows with SELECT ... FOR UPDATE. Other writers block until commit.
        """
        db.query(Ranking).filter(
            self._attendee_filter(event_id, attendee_id)
        ).update({Ranking.position: Ranking.position}, synchronize_session=False)
        return db.query(Ranking).filter(
            self._attendee_filter(event_id, attendee_id)
        ).order_by(Ranking.position).with_for_update().populate_existing().all()

    @staticmethod
    def _renumber(rows: List[Ranking]) -> None:
        for position, row in enumerate(rows, start=1):
            if row.position != position:
                row.position = position

    def get(self, db: Session, event_id: str, attendee_id: str) -> List[str]:
        """Ordered request ids, best first"""
        return [row.request_id for row in self._rows(db, event_id, attendee_id)]

    def add(
        self,
        db: Session,
        event_id: str,
        attendee_id: str,
        request_id: str,
        position: Optional[int] = None
    ) -> List[str]:
        """
        Add a request to an attendee's list.

        Appends by default; an explicit `position` inserts there (clamped to
        the list bounds) and shifts the rest down.

        Raises:
            UnknownEvent, UnknownRequest, NotRankable, AlreadyRanked, DepthExceeded
        """
        config = self.pool.get_config(db, event_id)
        request = self.pool.get_request(db, event_id, request_id)
        if not is_rankable_status(request.status):
            raise NotRankable(f"Request {request_id} is {request.status} and cannot be ranked")

        try:
            rows = self._lock_rows(db, event_id, attendee_id)
            if any(row.request_id == request_id for row in rows):
                raise AlreadyRanked(f"Request {request_id} is already in the ranking")
            if len(rows) >= config.ranking_depth:
                raise DepthExceeded(
                    f"Maximum {config.ranking_depth} songs allowed in ranking. Remove a song first."
                )

            insert_at = len(rows) + 1 if position is None else min(max(position, 1), len(rows) + 1)
            new_row = Ranking(
                event_id=event_id,
                participant_id=attendee_id,
                request_id=request_id,
                position=insert_at
            )
            rows.insert(insert_at - 1, new_row)
            db.add(new_row)
            self._renumber(rows)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.debug(f"Attendee {attendee_id} ranked {request_id} at {insert_at} in event {event_id}")
        return [row.request_id for row in rows]

    def remove(self, db: Session, event_id: str, attendee_id: str, request_id: str) -> List[str]:
        """Remove a request; absent requests are a no-op"""
        try:
            rows = self._lock_rows(db, event_id, attendee_id)
            target = next((row for row in rows if row.request_id == request_id), None)
            if target is not None:
                rows.remove(target)
                db.delete(target)
                self._renumber(rows)
            db.commit()
        except Exception:
            db.rollback()
            raise

        if target is not None:
            logger.debug(f"Attendee {attendee_id} unranked {request_id} in event {event_id}")
        return [row.request_id for row in rows]

    def reorder(
        self,
        db: Session,
        event_id: str,
        attendee_id: str,
        ordered_ids: List[str]
    ) -> List[str]:
        """
        Reassign positions to follow `ordered_ids`.

        Raises:
            InvalidPermutation: unless `ordered_ids` is exactly a permutation of the current list
        """
        try:
            rows = self._lock_rows(db, event_id, attendee_id)
            by_id = {row.request_id: row for row in rows}

            if len(ordered_ids) != len(rows):
                raise InvalidPermutation(
                    f"Expected {len(rows)} request ids, got {len(ordered_ids)}"
                )
            if len(set(ordered_ids)) != len(ordered_ids):
                raise InvalidPermutation("Duplicate request id in new order")
            unknown = [request_id for request_id in ordered_ids if request_id not in by_id]
            if unknown:
                raise InvalidPermutation(f"Request {unknown[0]} is not in your rankings")

            for position, request_id in enumerate(ordered_ids, start=1):
                by_id[request_id].position = position
            db.commit()
        except Exception:
            db.rollback()
            raise

        return list(ordered_ids)

    def replace(
        self,
        db: Session,
        event_id: str,
        attendee_id: str,
        request_ids: List[str]
    ) -> List[str]:
        """Replace the whole list in one transaction"""
        config = self.pool.get_config(db, event_id)
        if len(request_ids) > config.ranking_depth:
            raise DepthExceeded(f"Maximum {config.ranking_depth} songs allowed in ranking")
        if len(set(request_ids)) != len(request_ids):
            raise InvalidPermutation("Duplicate request id in ranking")
        for request_id in request_ids:
            request = self.pool.get_request(db, event_id, request_id)
            if not is_rankable_status(request.status):
                raise NotRankable(f"Request {request_id} is {request.status} and cannot be ranked")

        try:
            for row in self._lock_rows(db, event_id, attendee_id):
                db.delete(row)
            db.flush()
            for position, request_id in enumerate(request_ids, start=1):
                db.add(Ranking(
                    event_id=event_id,
                    participant_id=attendee_id,
                    request_id=request_id,
                    position=position
                ))
            db.commit()
        except Exception:
            db.rollback()
            raise

        return list(request_ids)

    def prune_request(self, db: Session, event_id: str, request_id: str) -> int:
        """Remove one request from every attendee's list and recompact"""
        attendees = [
            row.participant_id for row in db.query(Ranking.participant_id).filter(
                Ranking.event_id == event_id,
                Ranking.request_id == request_id
            ).distinct().all()
        ]
        for attendee_id in attendees:
            self.remove(db, event_id, attendee_id, request_id)
        if attendees:
            logger.info(f"Pruned request {request_id} from {len(attendees)} rankings in event {event_id}")
        return len(attendees)

    def prune_unrankable(self, db: Session, event_id: str) -> int:
        """Remove every entry whose request left the rankable pool"""
        stale = db.query(Ranking.participant_id, Ranking.request_id).join(
            SongRequest, SongRequest.id == Ranking.request_id
        ).filter(
            Ranking.event_id == event_id,
            SongRequest.status.notin_(RANKABLE_STATUSES)
        ).all()

        by_attendee = defaultdict(set)
        for row in stale:
            by_attendee[row.participant_id].add(row.request_id)

        removed = 0
        for attendee_id, request_ids in by_attendee.items():
            try:
                keep = []
                for row in self._lock_rows(db, event_id, attendee_id):
                    if row.request_id in request_ids:
                        db.delete(row)
                        removed += 1
                    else:
                        keep.append(row)
                self._renumber(keep)
                db.commit()
            except Exception:
                db.rollback()
                raise

        if removed:
            logger.warning(f"Pruned {removed} ranking entries for non-rankable requests in event {event_id}")
        return removed

    def read_inputs(self, db: Session, event_id: str) -> RankingInputs:
        """
        Consistent read of the rankable pool and all rankings.

        One statement joins requests to rankings, so the result reflects a
        single point in time even while attendees keep editing.
        """
        rows = db.query(
            SongRequest.id.label("request_id"),
            Ranking.participant_id,
            Ranking.position
        ).outerjoin(
            Ranking,
            and_(
                Ranking.request_id == SongRequest.id,
                Ranking.event_id == SongRequest.event_id
            )
        ).filter(
            SongRequest.event_id == event_id,
            SongRequest.status.in_(RANKABLE_STATUSES)
        ).all()

        rankable_ids = set()
        positioned: Dict[str, list] = defaultdict(list)
        for row in rows:
            rankable_ids.add(row.request_id)
            if row.participant_id is not None:
                positioned[row.participant_id].append((row.position, row.request_id))

        return RankingInputs(
            event_id=event_id,
            rankable_ids=sorted(rankable_ids),
            rankings={
                attendee_id: [request_id for _, request_id in sorted(entries)]
                for attendee_id, entries in positioned.items()
            }
        )

    def list_event_ids(self, db: Session) -> List[str]:
        """Events with at least one ranking entry"""
        return [row.event_id for row in db.query(Ranking.event_id).distinct().all()]


# Singleton instance
ranking_store = AttendeeRankingStore()
