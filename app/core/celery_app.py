"""
Celery application configuration.

Celery runs the periodic maintenance sweeps (campaign completion detection and
failed-tailoring requeue) via beat. The pipeline stages themselves run as
kombu consumers in app.workers, not as Celery tasks.
"""

from celery import Celery
from app.core.config import settings

# Create Celery instance
celery_app = Celery(
    "campaign_pipeline",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL
)

# Configure Celery
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task behavior
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max per sweep
    task_soft_time_limit=240,

    # Result backend
    result_expires=3600,

    # Worker behavior
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,

    # Periodic sweeps
    beat_schedule={
        "campaign-completion-sweep": {
            "task": "app.tasks.campaign_tasks.sweep_campaign_completion_task",
            "schedule": settings.CAMPAIGN_COMPLETION_POLL_SECONDS,
        },
        "failed-tailoring-sweep": {
            "task": "app.tasks.campaign_tasks.requeue_failed_tailoring_task",
            "schedule": settings.FAILED_TAILORING_SWEEP_SECONDS,
        },
    },
)

# Auto-discover tasks from app.tasks module
celery_app.autodiscover_tasks(['app'])
