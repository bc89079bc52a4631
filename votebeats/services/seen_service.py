"""
Seen Service - tracks which rankable songs an attendee has browsed
"""
import logging
from typing import List
from sqlalchemy import select
from sqlalchemy.orm import Session

from votebeats.db.models import SeenSong, SongRequest, RANKABLE_STATUSES

logger = logging.getLogger(__name__)


class SeenService:
    """Browse-queue bookkeeping for attendees"""

    def mark_seen(self, db: Session, event_id: str, attendee_id: str, request_ids: List[str]) -> int:
        """Record songs as seen; already-seen songs are skipped"""
        already = {
            row.request_id for row in db.query(SeenSong.request_id).filter(
                SeenSong.event_id == event_id,
                SeenSong.participant_id == attendee_id
            ).all()
        }
        known = {
            row.id for row in db.query(SongRequest.id).filter(
                SongRequest.event_id == event_id,
                SongRequest.id.in_(request_ids)
            ).all()
        }

        added = 0
        for request_id in dict.fromkeys(request_ids):
            if request_id in already or request_id not in known:
                continue
            db.add(SeenSong(event_id=event_id, participant_id=attendee_id, request_id=request_id))
            added += 1
        db.commit()
        logger.debug(f"Attendee {attendee_id} saw {added} new songs in event {event_id}")
        return added

    def unseen_count(self, db: Session, event_id: str, attendee_id: str) -> int:
        """Rankable songs the attendee has not seen yet"""
        seen = select(SeenSong.request_id).where(
            SeenSong.event_id == event_id,
            SeenSong.participant_id == attendee_id
        )
        return db.query(SongRequest.id).filter(
            SongRequest.event_id == event_id,
            SongRequest.status.in_(RANKABLE_STATUSES),
            SongRequest.id.notin_(seen)
        ).count()


# Singleton instance
seen_service = SeenService()
