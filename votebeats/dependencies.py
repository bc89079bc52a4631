"""
FastAPI dependencies for the VoteBeats ranking service
"""
from typing import Generator, Optional
from fastapi import Header, HTTPException, Request, status
from sqlalchemy.orm import Session
from votebeats.db.database import SessionLocal
from votebeats.config import settings
from votebeats.services.ranking_engine import RankingEngine


def get_db() -> Generator[Session, None, None]:
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_ranking_engine(request: Request) -> RankingEngine:
    """The engine owned by the running application"""
    return request.app.state.ranking_engine


async def verify_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    """Verify API key for DJ-only endpoints"""
    if not x_api_key or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
    return x_api_key
