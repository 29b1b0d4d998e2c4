"""
Periodic campaign maintenance, run by Celery beat.

- sweep_campaign_completion_task: marks running campaigns COMPLETED once their
  stage counts are stable and nothing is left to tailor
- requeue_failed_tailoring_task: re-publishes tailor missions for FAILED
  matches that still have retry budget

Each task is a thin wrapper around a plain function so the sweeps can be
called directly (tests, CLI) with an explicit session and queue.
"""

import logging
from typing import Dict
from sqlalchemy.orm import Session
from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.queue import QueueClient, campaign_queue
from app.crud import campaign as crud_campaign
from app.crud import matched_pair as crud_matched_pair
from app.models.campaign import CampaignStatus
from app.schemas.messages import TailorMission
from app.services.campaign_service import evaluate_completion

logger = logging.getLogger(__name__)


def sweep_completion(db: Session) -> Dict[str, int]:
    """One completion poll over every running campaign."""
    checked = completed = 0
    for campaign in crud_campaign.get_running(db):
        checked += 1
        if evaluate_completion(db, campaign):
            completed += 1
    return {"checked": checked, "completed": completed}


def requeue_failed_tailoring(db: Session, queue: QueueClient, max_attempts: int = None) -> int:
    """
    Reset FAILED matches with attempts left to PENDING and publish a fresh
    tailor mission for each. Matches of cancelled campaigns are left alone.

    Returns:
        int: Number of missions re-published
    """
    max_attempts = max_attempts or settings.TAILOR_MAX_RETRIES
    requeued = 0
    for pair in crud_matched_pair.get_failed_for_retry(db, max_attempts=max_attempts):
        campaign = crud_campaign.get_by_id(db, pair.campaign_id)
        if campaign is None or campaign.status != CampaignStatus.RUNNING:
            continue
        crud_matched_pair.reset_for_retry(db, pair)
        dedicated = bool(campaign.dedicated_workers)
        queue.publish(
            campaign_queue(settings.TAILOR_QUEUE, campaign.id if dedicated else None),
            TailorMission(
                job_id=pair.job_id,
                matched_pair_id=pair.id,
                campaign_id=pair.campaign_id,
                resume_id=pair.resume_id,
                dedicated=dedicated,
            ),
        )
        requeued += 1
        logger.info(
            f"Requeued tailoring for match {pair.id} (job {pair.job_id}, campaign {pair.campaign_id}, "
            f"attempts so far {pair.tailoring_attempts})"
        )
    return requeued


@celery_app.task(name="app.tasks.campaign_tasks.sweep_campaign_completion_task", bind=True)
def sweep_campaign_completion_task(self):
    """
    Celery beat entry point for completion detection.

    Returns:
        dict: Number of campaigns checked and completed
    """
    db = SessionLocal()
    try:
        result = sweep_completion(db)
        logger.info(f"[Task {self.request.id}] Completion sweep: {result}")
        return result
    finally:
        db.close()


@celery_app.task(name="app.tasks.campaign_tasks.requeue_failed_tailoring_task", bind=True)
def requeue_failed_tailoring_task(self):
    """
    Celery beat entry point for the failed-tailoring retry sweep.

    Returns:
        dict: Number of tailor missions re-published
    """
    db = SessionLocal()
    try:
        with QueueClient() as queue:
            queue.declare_queue(settings.TAILOR_QUEUE)
            requeued = requeue_failed_tailoring(db, queue)
        logger.info(f"[Task {self.request.id}] Requeued {requeued} failed tailoring mission(s)")
        return {"requeued": requeued}
    finally:
        db.close()
