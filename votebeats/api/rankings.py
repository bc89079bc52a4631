"""
Rankings Router - attendee Top-N lists and aggregated ranked-choice scores
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from typing import List, Optional
from sqlalchemy.orm import Session

from votebeats.dependencies import get_db, get_ranking_engine, verify_api_key
from votebeats.ranking.types import DualRankingSnapshot, ScoringMode
from votebeats.services.ranking_engine import RankingEngine
from votebeats.services.seen_service import seen_service

router = APIRouter()


class AddRankingRequest(BaseModel):
    attendee_id: str
    request_id: str
    position: Optional[int] = Field(None, ge=1, description="Insert slot; appends when omitted")


class ReplaceRankingsRequest(BaseModel):
    attendee_id: str
    request_ids: List[str]


class ReorderRankingsRequest(BaseModel):
    attendee_id: str
    ordered_request_ids: List[str]


class SwitchModeRequest(BaseModel):
    primary_mode: ScoringMode


class MarkSeenRequest(BaseModel):
    attendee_id: str
    request_ids: List[str]


@router.get("/{event_id}/rankings")
async def get_my_rankings(
    event_id: str,
    attendee_id: str = Query(..., description="Attendee whose list to return"),
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """
    Get an attendee's personal ranking, best first.

    Returns slots used and the event's ranking depth alongside the list.
    """
    return engine.get_my_rankings(db, event_id, attendee_id)


@router.put("/{event_id}/rankings")
async def replace_rankings(
    event_id: str,
    request: ReplaceRankingsRequest,
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """Replace an attendee's whole ranking list"""
    return engine.replace_rankings(db, event_id, request.attendee_id, request.request_ids)


@router.post("/{event_id}/rankings/add", status_code=201)
async def add_to_ranking(
    event_id: str,
    request: AddRankingRequest,
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """
    Add a song to an attendee's ranking.

    Rules:
    - Only pending or queued requests can be ranked
    - At most `ranking_depth` songs per attendee
    - Adding a song already ranked is a no-op (`added: false`)
    """
    return engine.add_to_ranking(
        db,
        event_id,
        request.attendee_id,
        request.request_id,
        request.position
    )


@router.put("/{event_id}/rankings/reorder")
async def reorder_rankings(
    event_id: str,
    request: ReorderRankingsRequest,
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """Reorder an attendee's ranking; the body must be a permutation of the current list"""
    return engine.reorder_rankings(db, event_id, request.attendee_id, request.ordered_request_ids)


@router.get("/{event_id}/rankings/scores")
async def get_ranking_scores(
    event_id: str,
    attendee_id: Optional[str] = Query(None, description="Include this attendee's own positions"),
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """
    Aggregated order in the event's primary mode (attendee view).

    Scores are previews until `activated` is true.
    """
    return await engine.get_primary_scores(db, event_id, attendee_id)


@router.get(
    "/{event_id}/rankings/scores/dual",
    response_model=DualRankingSnapshot,
    dependencies=[Depends(verify_api_key)]
)
async def get_dual_ranking_scores(
    event_id: str,
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """
    Consensus and Discovery orderings plus hidden gems (DJ view).

    Consensus: net pairwise wins, then number of rankers.
    Discovery: pairwise win rate among those who compared the song.
    Manual locks are applied to both columns.
    """
    return await engine.get_dual_ranking_scores(db, event_id)


@router.post(
    "/{event_id}/rankings/refresh",
    response_model=DualRankingSnapshot,
    dependencies=[Depends(verify_api_key)]
)
async def refresh_rankings(
    event_id: str,
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """Force an immediate recompute and return the fresh snapshot"""
    return await engine.refresh_rankings(db, event_id)


@router.post("/{event_id}/rankings/switch-mode", dependencies=[Depends(verify_api_key)])
async def switch_mode(
    event_id: str,
    request: SwitchModeRequest,
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """Switch the primary scoring mode shown to attendees"""
    return engine.switch_primary_mode(db, event_id, request.primary_mode.value)


@router.post("/{event_id}/rankings/seen")
async def mark_seen(
    event_id: str,
    request: MarkSeenRequest,
    db: Session = Depends(get_db)
):
    """Mark songs as seen in the attendee's browse queue"""
    added = seen_service.mark_seen(db, event_id, request.attendee_id, request.request_ids)
    return {"marked": added}


@router.get("/{event_id}/rankings/unseen-count")
async def get_unseen_count(
    event_id: str,
    attendee_id: str = Query(...),
    db: Session = Depends(get_db)
):
    """Number of rankable songs the attendee has not seen yet"""
    return {"unseen_count": seen_service.unseen_count(db, event_id, attendee_id)}


@router.delete("/{event_id}/rankings/{request_id}")
async def remove_from_ranking(
    event_id: str,
    request_id: str,
    attendee_id: str = Query(...),
    db: Session = Depends(get_db),
    engine: RankingEngine = Depends(get_ranking_engine)
):
    """Remove a song from an attendee's ranking; later songs move up"""
    return engine.remove_from_ranking(db, event_id, request_id, attendee_id)
