"""
Main FastAPI application for the VoteBeats ranking service
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from votebeats.config import settings
from votebeats.db.database import init_db
from votebeats.api import system, rankings, requests
from votebeats.exceptions import RankingError
from votebeats.services.ranking_engine import RankingEngine

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting VoteBeats ranking service...")
    init_db()
    logger.info("Database initialized")
    engine = RankingEngine()
    app.state.ranking_engine = engine
    engine.start()

    yield

    # Shutdown
    logger.info("Shutting down VoteBeats ranking service...")
    await engine.stop()


app = FastAPI(
    title="VoteBeats Ranking Service",
    description="Ranked-choice song queue: consensus and discovery orderings for live events",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RankingError)
async def ranking_error_handler(request: Request, exc: RankingError):
    """Client-facing ranking errors, e.g. a full ranking"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.APP_DEBUG else "An unexpected error occurred"
        }
    )


# Include routers
app.include_router(system.router, tags=["System"])
app.include_router(rankings.router, prefix="/events", tags=["Rankings"])
app.include_router(requests.router, prefix="/events", tags=["Requests"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "VoteBeats Ranking",
        "version": "1.0.0",
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "votebeats.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )
