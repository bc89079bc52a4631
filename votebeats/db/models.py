"""
SQLAlchemy ORM Models for the VoteBeats ranking service
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey,
    UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from votebeats.config import settings
from votebeats.db.database import Base

RANKABLE_STATUSES = ("pending", "queued")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_new_id)
    dj_id = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False)
    ranking_depth = Column(Integer, default=settings.DEFAULT_RANKING_DEPTH)
    min_participants_for_activation = Column(Integer, default=settings.DEFAULT_MIN_PARTICIPANTS)
    gap_threshold = Column(Integer, default=settings.DEFAULT_GAP_THRESHOLD)
    gem_discovery_fraction = Column(Float, default=settings.DEFAULT_GEM_DISCOVERY_FRACTION)
    primary_mode = Column(String(20), default=settings.DEFAULT_PRIMARY_MODE)  # consensus, discovery
    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    requests = relationship("SongRequest", back_populates="event", cascade="all, delete-orphan")


class SongRequest(Base):
    """Owned by the request workflow; the ranking engine reads status and locks."""
    __tablename__ = "song_requests"

    id = Column(String(36), primary_key=True, default=_new_id)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    song_title = Column(String(255), nullable=False)
    artist_name = Column(String(255))
    status = Column(String(20), default="pending")  # pending, queued, playing, played, rejected
    manual_order = Column(Integer)
    manual_order_set_at = Column(DateTime)
    created_at = Column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("idx_song_requests_event_status", "event_id", "status"),
    )

    # Relationships
    event = relationship("Event", back_populates="requests")


class Ranking(Base):
    __tablename__ = "rankings"

    id = Column(String(36), primary_key=True, default=_new_id)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    participant_id = Column(String(64), nullable=False)
    request_id = Column(String(36), ForeignKey("song_requests.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    added_at = Column(DateTime, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("event_id", "participant_id", "request_id", name="unique_participant_ranking"),
        Index("idx_rankings_event_participant", "event_id", "participant_id"),
    )


class SeenSong(Base):
    __tablename__ = "seen_songs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    participant_id = Column(String(64), nullable=False)
    request_id = Column(String(36), ForeignKey("song_requests.id", ondelete="CASCADE"), nullable=False)
    seen_at = Column(DateTime, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("event_id", "participant_id", "request_id", name="unique_seen_song"),
    )
