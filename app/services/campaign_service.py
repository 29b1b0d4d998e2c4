"""
Campaign controller: launch, stop, status.

The controller only writes the campaign row and publishes scrape missions.
Everything downstream happens in worker processes; stop is a status flip
that workers observe at their checkpoints.
"""

import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.queue import QueueClient, QueueConnectionError, campaign_queue
from app.crud import campaign as crud_campaign
from app.models.campaign import Campaign, CampaignStatus
from app.schemas.campaign import CampaignLaunchRequest, CampaignStats, CampaignStatusResponse
from app.schemas.messages import ScrapeMission

logger = logging.getLogger(__name__)


class CampaignError(Exception):
    """Base class for controller errors returned synchronously to the caller"""
    status_code = 400
    error = "campaign_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class ConflictError(CampaignError):
    """The owner already has a running campaign"""
    status_code = 409
    error = "conflict"


class NotFoundError(CampaignError):
    """No campaign matches (campaign_id, owner_id)"""
    status_code = 404
    error = "not_found"


class CampaignService:
    """
    Args:
        db: Database session
        queue: Connected QueueClient used to publish scrape missions. Only
            launch needs it; stop and status work against the database alone.
    """

    def __init__(self, db: Session, queue: Optional[QueueClient] = None):
        self.db = db
        self.queue = queue

    def launch(self, request: CampaignLaunchRequest) -> Campaign:
        """
        Create a RUNNING campaign and fan out N identical scrape missions.

        The one-running-campaign-per-owner rule is checked here, not by a
        database constraint; two concurrent launches can both pass the check.

        Raises:
            ConflictError: The owner already has a running campaign
            QueueConnectionError: No queue client was provided
        """
        if self.queue is None:
            raise QueueConnectionError("CampaignService.launch requires a connected queue client")

        running = crud_campaign.get_running_for_owner(self.db, request.owner_id)
        if running:
            raise ConflictError(
                f"Owner {request.owner_id} already has a running campaign ({running[0].id}). Stop it first."
            )

        if request.campaign_id and crud_campaign.get_by_id(self.db, request.campaign_id):
            raise ConflictError(f"Campaign {request.campaign_id} already exists")

        scrapers = request.instance_counts.scrapers
        campaign = crud_campaign.create(
            self.db,
            owner_id=request.owner_id,
            resume_id=request.resume_id,
            target_role=request.target_role,
            target_location=request.target_location,
            scraper_instances=scrapers,
            campaign_id=request.campaign_id,
            dedicated_workers=request.dedicated_workers,
        )

        mission = ScrapeMission(
            campaign_id=campaign.id,
            owner_id=campaign.owner_id,
            target_role=campaign.target_role,
            target_location=campaign.target_location,
            resume_id=campaign.resume_id,
            dedicated=bool(campaign.dedicated_workers),
        )
        scrape_queue = campaign_queue(settings.SCRAPE_QUEUE, campaign.id if campaign.dedicated_workers else None)
        self.queue.declare_queue(scrape_queue)
        for _ in range(scrapers):
            self.queue.publish(scrape_queue, mission)

        logger.info(
            f"Campaign {campaign.id} launched for owner {campaign.owner_id}: "
            f"'{campaign.target_role}' in '{campaign.target_location}', {scrapers} scrape mission(s) on {scrape_queue}"
        )
        return campaign

    def stop(self, campaign_id: str, owner_id: str) -> Campaign:
        """
        Flip the campaign to STOPPED. Workers notice at their next checkpoint.

        Stopping a campaign that is no longer running leaves it unchanged.

        Raises:
            NotFoundError: No campaign matches (campaign_id, owner_id)
        """
        campaign = self._get_owned(campaign_id, owner_id)
        if campaign.status != CampaignStatus.RUNNING:
            logger.info(f"Campaign {campaign_id} already {campaign.status.value}, stop ignored")
            return campaign

        campaign = crud_campaign.update_status(self.db, campaign, CampaignStatus.STOPPED)
        logger.info(f"Campaign {campaign_id} stopped by owner {owner_id}")
        return campaign

    def status(self, campaign_id: str, owner_id: str) -> CampaignStatusResponse:
        """
        Raises:
            NotFoundError: No campaign matches (campaign_id, owner_id)
        """
        campaign = self._get_owned(campaign_id, owner_id)
        stats = crud_campaign.compute_stats(self.db, campaign.id)
        return CampaignStatusResponse(
            campaign_id=campaign.id,
            status=campaign.status.value,
            target_role=campaign.target_role,
            target_location=campaign.target_location,
            error_message=campaign.error_message,
            created_at=campaign.created_at,
            stats=stats,
        )

    def list_for_owner(self, owner_id: str, skip: int = 0, limit: int = 100) -> List[Campaign]:
        return crud_campaign.get_multi_for_owner(self.db, owner_id, skip=skip, limit=limit)

    def _get_owned(self, campaign_id: str, owner_id: str) -> Campaign:
        campaign = crud_campaign.get_for_owner(self.db, campaign_id, owner_id)
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")
        return campaign


def evaluate_completion(db: Session, campaign: Campaign, stable_polls_required: Optional[int] = None) -> bool:
    """
    One completion-detection poll for a running campaign.

    The campaign is marked COMPLETED once its stage counts have been
    unchanged for `stable_polls_required` consecutive polls while:

    - every scrape mission has ended (completed or failed)
    - every scraped job has a match decision
    - no match is still pending or processing

    Returns True when the campaign was completed.
    """
    required = stable_polls_required or settings.CAMPAIGN_COMPLETION_STABLE_POLLS
    if campaign.status != CampaignStatus.RUNNING:
        return False

    stats: CampaignStats = crud_campaign.compute_stats(db, campaign.id)
    snapshot = stats.model_dump()
    in_flight = crud_campaign.count_in_flight_tailoring(db, campaign.id)
    scrapes_ended = (campaign.scrapes_completed or 0) + (campaign.scrape_failures or 0)
    drained = (
        scrapes_ended >= campaign.scraper_instances
        and stats.jobs_scraped == stats.jobs_matched + stats.jobs_rejected
        and in_flight == 0
    )

    if campaign.last_stats == snapshot and drained:
        campaign.stable_polls = (campaign.stable_polls or 0) + 1
    else:
        campaign.stable_polls = 0
    campaign.last_stats = snapshot
    db.commit()

    if campaign.stable_polls >= required:
        crud_campaign.update_status(db, campaign, CampaignStatus.COMPLETED)
        logger.info(f"Campaign {campaign.id} completed: {snapshot}")
        return True
    return False
