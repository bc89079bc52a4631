"""
Rankable Pool - read side of the request workflow.

Supplies the requests eligible for ranking, per-event configuration and the
DJ's manual locks. Status changes and locks are written here on behalf of the
request workflow; the ranking engine only consumes them.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from sqlalchemy import and_
from sqlalchemy.orm import Session

from votebeats.db.models import Event, SongRequest, RANKABLE_STATUSES
from votebeats.exceptions import InvalidScoringMode, UnknownEvent, UnknownRequest
from votebeats.ranking.types import RankingConfig, RequestDetails, ScoringMode

logger = logging.getLogger(__name__)

REQUEST_STATUSES = ("pending", "queued", "playing", "played", "rejected")


def is_rankable_status(status: Optional[str]) -> bool:
    return status in RANKABLE_STATUSES


class RankablePool:
    """Access to events and song requests"""

    def get_event(self, db: Session, event_id: str) -> Event:
        event = db.query(Event).filter(Event.id == event_id).first()
        if not event:
            raise UnknownEvent(f"Event {event_id} not found")
        return event

    def get_config(self, db: Session, event_id: str) -> RankingConfig:
        return RankingConfig.from_event(self.get_event(db, event_id))

    def get_request(self, db: Session, event_id: str, request_id: str) -> SongRequest:
        request = db.query(SongRequest).filter(
            and_(
                SongRequest.id == request_id,
                SongRequest.event_id == event_id
            )
        ).first()
        if not request:
            raise UnknownRequest(f"Request {request_id} not found in event {event_id}")
        return request

    def list_rankable(self, db: Session, event_id: str) -> List[Dict[str, Any]]:
        """Requests currently eligible for ranking, oldest first"""
        rows = db.query(SongRequest.id, SongRequest.status).filter(
            SongRequest.event_id == event_id,
            SongRequest.status.in_(RANKABLE_STATUSES)
        ).order_by(SongRequest.created_at, SongRequest.id).all()
        return [{"request_id": row.id, "status": row.status} for row in rows]

    def list_request_details(self, db: Session, event_id: str) -> Dict[str, RequestDetails]:
        """Song info and lock state for every request in the event, keyed by id"""
        rows = db.query(
            SongRequest.id,
            SongRequest.song_title,
            SongRequest.artist_name,
            SongRequest.status,
            SongRequest.created_at,
            SongRequest.manual_order,
            SongRequest.manual_order_set_at
        ).filter(SongRequest.event_id == event_id).all()
        return {
            row.id: RequestDetails(
                request_id=row.id,
                song_title=row.song_title,
                artist_name=row.artist_name,
                status=row.status,
                created_at=row.created_at,
                manual_order=row.manual_order,
                manual_order_set_at=row.manual_order_set_at
            )
            for row in rows
        }

    def set_lock(
        self,
        db: Session,
        event_id: str,
        request_id: str,
        manual_order: Optional[int]
    ) -> Dict[str, Any]:
        """
        Pin a request to a display slot, or clear its pin with None.

        The newest lock on a slot wins: any other request in the event holding
        the same slot is released.
        """
        request = self.get_request(db, event_id, request_id)
        released = []

        if manual_order is None:
            request.manual_order = None
            request.manual_order_set_at = None
        else:
            holders = db.query(SongRequest).filter(
                SongRequest.event_id == event_id,
                SongRequest.manual_order == manual_order,
                SongRequest.id != request_id
            ).all()
            for holder in holders:
                holder.manual_order = None
                holder.manual_order_set_at = None
                released.append(holder.id)
            request.manual_order = manual_order
            request.manual_order_set_at = datetime.now(timezone.utc)

        db.commit()
        if released:
            logger.info(f"Lock on slot {manual_order} in event {event_id} moved to {request_id}, released {released}")

        return {
            "request_id": request_id,
            "manual_order": manual_order,
            "released": released
        }

    def set_status(
        self,
        db: Session,
        event_id: str,
        request_id: str,
        status: str
    ) -> Dict[str, Any]:
        """Record a status transition made by the request workflow"""
        if status not in REQUEST_STATUSES:
            raise ValueError(f"Unknown request status: {status}")
        request = self.get_request(db, event_id, request_id)
        previous = request.status
        request.status = status
        db.commit()
        return {
            "request_id": request_id,
            "previous_status": previous,
            "status": status,
            "left_pool": is_rankable_status(previous) and not is_rankable_status(status)
        }

    def set_primary_mode(self, db: Session, event_id: str, mode: str) -> ScoringMode:
        try:
            scoring_mode = ScoringMode(mode)
        except ValueError:
            raise InvalidScoringMode('primary mode must be "consensus" or "discovery"')
        event = self.get_event(db, event_id)
        event.primary_mode = scoring_mode.value
        db.commit()
        return scoring_mode


# Singleton instance
rankable_pool = RankablePool()
