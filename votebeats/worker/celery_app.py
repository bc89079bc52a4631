"""
Celery Application Configuration
"""
from celery import Celery
from votebeats.config import settings

# Create Celery app
celery_app = Celery(
    "votebeats_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "votebeats.worker.tasks"
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,  # Results expire after 1 hour

    # Beat schedule for periodic tasks
    beat_schedule={
        "prune-unrankable-rankings": {
            "task": "votebeats.worker.tasks.prune_unrankable_rankings",
            "schedule": settings.PRUNE_SWEEP_INTERVAL_SEC,
        },
    }
)

if __name__ == "__main__":
    celery_app.start()
