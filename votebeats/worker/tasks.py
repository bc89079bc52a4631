"""
Celery Tasks for ranking maintenance
"""
import logging
from celery import shared_task
from sqlalchemy.exc import OperationalError
from votebeats.db.database import SessionLocal
from votebeats.services.ranking_store import ranking_store

logger = logging.getLogger(__name__)


def get_db_session():
    """Get database session for tasks"""
    return SessionLocal()


@shared_task(name="votebeats.worker.tasks.prune_unrankable_rankings")
def prune_unrankable_rankings():
    """
    Sweep every event with rankings and drop entries for requests that were
    played or rejected. Runs on the beat schedule so idle events get cleaned
    up even when nobody triggers a recompute.
    """
    db = get_db_session()
    try:
        event_ids = ranking_store.list_event_ids(db)
        removed = 0
        for event_id in event_ids:
            removed += ranking_store.prune_unrankable(db, event_id)
        logger.info(f"Prune sweep checked {len(event_ids)} events, removed {removed} entries")
        return {"events_checked": len(event_ids), "entries_removed": removed}
    finally:
        db.close()


@shared_task(bind=True, max_retries=3, default_retry_delay=30,
             name="votebeats.worker.tasks.prune_request_rankings")
def prune_request_rankings(self, event_id: str, request_id: str):
    """
    Remove one request from every attendee's ranking.

    Enqueued by the request workflow when a song starts playing, is played
    or gets rejected.
    """
    db = get_db_session()
    try:
        affected = ranking_store.prune_request(db, event_id, request_id)
        return {"event_id": event_id, "request_id": request_id, "affected_attendees": affected}
    except OperationalError as e:
        logger.error(f"Pruning {request_id} from event {event_id} failed: {e}")
        raise self.retry(exc=e)
    finally:
        db.close()
