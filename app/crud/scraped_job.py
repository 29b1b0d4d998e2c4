"""
CRUD operations for ScrapedJob model.

Inserts are atomic insert-if-absent on the URL unique key: concurrent scraper
instances working the same campaign race on the same postings, and a separate
exists-check followed by an insert would let both of them write.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.models.scraped_job import ScrapedJob, Relevance
from app.models.types import new_id

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def create_if_absent(
    db: Session,
    url: str,
    title: str,
    company_name: str,
    owner_id: str,
    campaign_id: str,
    posting_id: Optional[str] = None,
    company_url: Optional[str] = None,
    location: Optional[str] = None,
    description: Optional[Dict[str, Any]] = None,
    posted_at: Optional[datetime] = None,
) -> Tuple[ScrapedJob, bool]:
    """
    Insert a scraped job unless one with the same URL already exists.

    Args:
        db: Database session
        url: Canonical posting URL (natural key)
        title, company_name: Required extracted fields
        owner_id, campaign_id: Ownership and batch grouping
        posting_id, company_url, location, description, posted_at: Optional fields

    Returns:
        Tuple of (stored row, created) where created is False when the URL
        was already present.
    """
    values = {
        "id": new_id(),
        "url": url,
        "posting_id": posting_id,
        "title": title,
        "company_name": company_name,
        "company_url": company_url,
        "location": location,
        "description": description,
        "posted_at": posted_at,
        "owner_id": owner_id,
        "campaign_id": campaign_id,
        "relevance": Relevance.PENDING,
        "is_deleted": False,
    }

    insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
    if insert is not None:
        stmt = insert(ScrapedJob).values(**values).on_conflict_do_nothing(index_elements=["url"])
        result = db.execute(stmt)
        db.commit()
        created = result.rowcount == 1
    else:
        # Fallback for other backends: rely on the unique constraint
        try:
            db.add(ScrapedJob(**values))
            db.commit()
            created = True
        except IntegrityError:
            db.rollback()
            created = False

    job = get_by_url(db, url)
    return job, created


def get_by_id(db: Session, job_id: str) -> Optional[ScrapedJob]:
    return db.query(ScrapedJob).filter(ScrapedJob.id == job_id).first()


def get_by_url(db: Session, url: str) -> Optional[ScrapedJob]:
    return db.query(ScrapedJob).filter(ScrapedJob.url == url).first()


def exists_by_url(db: Session, url: str) -> bool:
    """Cheap pre-check used to skip opening cards already in the store."""
    return db.query(ScrapedJob.id).filter(ScrapedJob.url == url).first() is not None


def get_by_campaign(db: Session, campaign_id: str, include_deleted: bool = False) -> List[ScrapedJob]:
    query = db.query(ScrapedJob).filter(ScrapedJob.campaign_id == campaign_id)
    if not include_deleted:
        query = query.filter(ScrapedJob.is_deleted.is_(False))
    return query.order_by(ScrapedJob.scraped_at).all()


def set_relevance(db: Session, job: ScrapedJob, relevance: Relevance) -> ScrapedJob:
    job.relevance = relevance
    db.commit()
    db.refresh(job)
    return job


def soft_delete(db: Session, job_id: str) -> bool:
    """
    Mark a job deleted without removing the row.

    Returns:
        bool: True if the job existed
    """
    job = get_by_id(db, job_id)
    if not job:
        return False
    job.is_deleted = True
    db.commit()
    return True
