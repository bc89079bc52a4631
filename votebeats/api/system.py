"""
System Router - Health checks and monitoring
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from votebeats.dependencies import get_db, get_ranking_engine
from votebeats.services.ranking_engine import RankingEngine

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check(
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """
    Health check endpoint.
    Reports database reachability and how many events await a recompute.
    """
    database_status = "healthy"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
        database_status = "unhealthy"

    return {
        "database": database_status,
        "stale_events": len(engine.cache.stale_event_ids()),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
