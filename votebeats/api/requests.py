"""
Requests Router - request-workflow boundary consumed by the ranking engine
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import Literal, Optional
from sqlalchemy.orm import Session

from votebeats.dependencies import get_db, get_ranking_engine, verify_api_key
from votebeats.services.ranking_engine import RankingEngine

router = APIRouter()


class LockPositionRequest(BaseModel):
    manual_order: Optional[int] = Field(None, ge=1, description="1-based slot; null clears the lock")


class StatusUpdateRequest(BaseModel):
    status: Literal["pending", "queued", "playing", "played", "rejected"]


@router.get("/{event_id}/requests/rankable")
async def list_rankable_requests(
    event_id: str,
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """Requests attendees may currently rank (pending or queued)"""
    return {"requests": engine.list_rankable(db, event_id)}


@router.put("/{event_id}/requests/{request_id}/lock", dependencies=[Depends(verify_api_key)])
async def lock_request_position(
    event_id: str,
    request_id: str,
    request: LockPositionRequest,
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """
    Pin a request to a queue slot, or release it.

    The most recent lock on a slot wins; the request previously holding it
    is released. Takes effect on the next read without a recompute.
    """
    return engine.lock_request_position(db, event_id, request_id, request.manual_order)


@router.put("/{event_id}/requests/{request_id}/status", dependencies=[Depends(verify_api_key)])
async def update_request_status(
    event_id: str,
    request_id: str,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """Record a status change; played or rejected songs leave every ranking"""
    return engine.update_request_status(db, event_id, request_id, request.status)
