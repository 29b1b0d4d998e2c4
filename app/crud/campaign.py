"""
CRUD operations for Campaign model.

Status aggregation is computed here with independent COUNT queries against
the work-item tables rather than stored counters, so the numbers cannot drift
after a crash.
"""

from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.campaign import Campaign, CampaignStatus
from app.models.scraped_job import ScrapedJob
from app.models.matched_pair import MatchedPair, TailoringStatus
from app.models.tailored_resume import TailoredResume, ArtifactStatus
from app.schemas.campaign import CampaignStats


def create(
    db: Session,
    owner_id: str,
    resume_id: str,
    target_role: str,
    target_location: str = "",
    scraper_instances: int = 1,
    campaign_id: Optional[str] = None,
    dedicated_workers: bool = False,
) -> Campaign:
    """
    Create a new campaign in RUNNING status.

    Args:
        db: Database session
        owner_id: Owner of the campaign
        resume_id: Resume the campaign matches and tailors against
        target_role: Role to search for
        target_location: Location to search in
        scraper_instances: Number of scrape missions fanned out
        campaign_id: Caller-supplied ID, generated when omitted
        dedicated_workers: Route the campaign's missions to its own queues

    Returns:
        Created Campaign instance
    """
    campaign = Campaign(
        owner_id=owner_id,
        resume_id=resume_id,
        target_role=target_role,
        target_location=target_location,
        scraper_instances=scraper_instances,
        dedicated_workers=dedicated_workers,
        status=CampaignStatus.RUNNING,
    )
    if campaign_id:
        campaign.id = campaign_id

    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return campaign


def get_by_id(db: Session, campaign_id: str) -> Optional[Campaign]:
    return db.query(Campaign).filter(Campaign.id == campaign_id).first()


def get_for_owner(db: Session, campaign_id: str, owner_id: str) -> Optional[Campaign]:
    """Retrieve a campaign only if it belongs to owner_id."""
    return db.query(Campaign).filter(
        Campaign.id == campaign_id,
        Campaign.owner_id == owner_id
    ).first()


def get_running_for_owner(db: Session, owner_id: str) -> List[Campaign]:
    return db.query(Campaign).filter(
        Campaign.owner_id == owner_id,
        Campaign.status == CampaignStatus.RUNNING
    ).all()


def get_multi_for_owner(db: Session, owner_id: str, skip: int = 0, limit: int = 100) -> List[Campaign]:
    return (
        db.query(Campaign)
        .filter(Campaign.owner_id == owner_id)
        .order_by(Campaign.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_running(db: Session) -> List[Campaign]:
    return db.query(Campaign).filter(Campaign.status == CampaignStatus.RUNNING).all()


def get_status(db: Session, campaign_id: str) -> Optional[CampaignStatus]:
    """
    Read only the status column. This is the cancellation poll, so it must
    bypass any stale identity-map copy of the row.
    """
    row = db.query(Campaign.status).filter(Campaign.id == campaign_id).first()
    return row[0] if row else None


def update_status(
    db: Session,
    campaign: Campaign,
    status: CampaignStatus,
    error_message: Optional[str] = None,
) -> Campaign:
    """
    Move a campaign to a new status, stamping stop/completion times.
    """
    campaign.status = status
    now = datetime.now(timezone.utc)
    if status == CampaignStatus.STOPPED:
        campaign.stopped_at = now
    elif status == CampaignStatus.COMPLETED:
        campaign.completed_at = now
    if error_message is not None:
        campaign.error_message = error_message

    db.commit()
    db.refresh(campaign)
    return campaign


def record_scrape_completion(db: Session, campaign_id: str) -> Optional[Campaign]:
    """Count a scrape mission that walked its listing to the end."""
    campaign = get_by_id(db, campaign_id)
    if not campaign:
        return None

    campaign.scrapes_completed = (campaign.scrapes_completed or 0) + 1
    db.commit()
    db.refresh(campaign)
    return campaign


def record_scrape_failure(db: Session, campaign_id: str, error_message: str) -> Optional[Campaign]:
    """
    Record a fatal scrape-mission failure.

    The campaign is marked FAILED once every one of its scrape missions has
    failed; until then the error is only kept for operator visibility.
    """
    campaign = get_by_id(db, campaign_id)
    if not campaign:
        return None

    campaign.scrape_failures = (campaign.scrape_failures or 0) + 1
    campaign.error_message = error_message
    if (
        campaign.status == CampaignStatus.RUNNING
        and campaign.scrape_failures >= campaign.scraper_instances
    ):
        campaign.status = CampaignStatus.FAILED

    db.commit()
    db.refresh(campaign)
    return campaign


def compute_stats(db: Session, campaign_id: str) -> CampaignStats:
    """
    Count work items for a campaign across the three stores.

    - jobs_scraped: ScrapedJob rows of the campaign
    - jobs_matched: MatchedPairs with a positive decision
    - jobs_tailored: successful TailoredResume artifacts
    - jobs_pending: matched minus tailored
    """
    jobs_scraped = db.query(func.count(ScrapedJob.id)).filter(
        ScrapedJob.campaign_id == campaign_id
    ).scalar() or 0

    jobs_matched = db.query(func.count(MatchedPair.id)).filter(
        MatchedPair.campaign_id == campaign_id,
        MatchedPair.is_positive.is_(True)
    ).scalar() or 0

    jobs_rejected = db.query(func.count(MatchedPair.id)).filter(
        MatchedPair.campaign_id == campaign_id,
        MatchedPair.is_positive.is_(False)
    ).scalar() or 0

    tailoring_failed = db.query(func.count(MatchedPair.id)).filter(
        MatchedPair.campaign_id == campaign_id,
        MatchedPair.tailoring_status == TailoringStatus.FAILED
    ).scalar() or 0

    jobs_tailored = db.query(func.count(TailoredResume.id)).filter(
        TailoredResume.campaign_id == campaign_id,
        TailoredResume.status == ArtifactStatus.SUCCESS
    ).scalar() or 0

    return CampaignStats(
        jobs_scraped=jobs_scraped,
        jobs_matched=jobs_matched,
        jobs_pending=jobs_matched - jobs_tailored,
        jobs_tailored=jobs_tailored,
        jobs_rejected=jobs_rejected,
        tailoring_failed=tailoring_failed,
    )


def count_in_flight_tailoring(db: Session, campaign_id: str) -> int:
    """Positive matches still waiting for, or undergoing, tailoring."""
    return db.query(func.count(MatchedPair.id)).filter(
        MatchedPair.campaign_id == campaign_id,
        MatchedPair.tailoring_status.in_([TailoringStatus.PENDING, TailoringStatus.PROCESSING])
    ).scalar() or 0
