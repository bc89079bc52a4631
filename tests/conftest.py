"""
Shared fixtures: a throwaway SQLite database per test and a seeded event.
"""

import pytest
from sqlalchemy.orm import sessionmaker

from votebeats.db.database import build_engine, init_db
from votebeats.db.models import Event, SongRequest
from votebeats.ranking.types import RankingInputs
from votebeats.services.ranking_engine import RankingEngine
from votebeats.services.ranking_store import AttendeeRankingStore

EVENT_ID = "evt-1"


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'votebeats.db'}")
    init_db(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def event(db):
    """Event with ranking depth 3 and a quorum of 3 participants."""
    event = Event(
        id=EVENT_ID,
        dj_id="dj-1",
        name="Friday Night",
        ranking_depth=3,
        min_participants_for_activation=3,
        gap_threshold=3,
        gem_discovery_fraction=0.5,
        primary_mode="consensus",
    )
    db.add(event)
    db.commit()
    return event


@pytest.fixture
def make_requests(db, event):
    """Create song requests with the given ids in the seeded event."""

    def _make(*request_ids, status="pending"):
        for request_id in request_ids:
            db.add(SongRequest(
                id=request_id,
                event_id=event.id,
                song_title=f"Song {request_id}",
                artist_name="Artist",
                status=status,
            ))
        db.commit()
        return list(request_ids)

    return _make


@pytest.fixture
def store():
    return AttendeeRankingStore()


@pytest.fixture
def engine(session_factory, store):
    return RankingEngine(session_factory=session_factory, store=store, refresh_interval=5)


def make_inputs(rankings, rankable=None, event_id=EVENT_ID):
    """RankingInputs from {attendee: [ids]}; pool defaults to every ranked id."""
    if rankable is None:
        rankable = sorted({rid for ordered in rankings.values() for rid in ordered})
    return RankingInputs(event_id=event_id, rankable_ids=list(rankable), rankings=rankings)


# Literal example: three attendees, three songs
EXAMPLE_RANKINGS = {
    "att-1": ["A", "B", "C"],
    "att-2": ["B", "A", "C"],
    "att-3": ["A", "C", "B"],
}

# Four attendees rotate A-D above X; one attendee prefers G over X.
# G wins every contest it is in but has a single ranker.
GEM_RANKINGS = {
    "att-1": ["A", "B", "C", "D", "X"],
    "att-2": ["B", "C", "D", "A", "X"],
    "att-3": ["C", "D", "A", "B", "X"],
    "att-4": ["D", "A", "B", "C", "X"],
    "att-5": ["G", "X"],
}
