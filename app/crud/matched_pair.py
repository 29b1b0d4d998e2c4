"""
CRUD operations for MatchedPair model.

(owner_id, job_id) is unique. upsert() updates the verdict columns of an
existing pair and leaves its tailoring progress alone.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from app.models.matched_pair import MatchedPair, TailoringStatus
from app.models.types import new_id

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert(
    db: Session,
    owner_id: str,
    job_id: str,
    resume_id: str,
    campaign_id: str,
    decision: str,
    is_positive: bool,
    confidence: float,
    reasoning: Optional[str] = None,
    analysis_report: Optional[Dict[str, Any]] = None,
) -> MatchedPair:
    """
    Create the match verdict for (owner_id, job_id), or update it if present.

    New rows start in PENDING tailoring status for positive decisions and
    SKIPPED for rejections.

    Returns:
        The stored MatchedPair
    """
    verdict = {
        "resume_id": resume_id,
        "campaign_id": campaign_id,
        "decision": decision,
        "is_positive": is_positive,
        "confidence": confidence,
        "reasoning": reasoning,
        "analysis_report": analysis_report,
    }
    initial_status = TailoringStatus.PENDING if is_positive else TailoringStatus.SKIPPED

    insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
    if insert is not None:
        stmt = insert(MatchedPair).values(
            id=new_id(),
            owner_id=owner_id,
            job_id=job_id,
            tailoring_status=initial_status,
            tailoring_attempts=0,
            **verdict,
        )
        stmt = stmt.on_conflict_do_update(index_elements=["owner_id", "job_id"], set_=verdict)
        db.execute(stmt)
        db.commit()
    else:
        pair = get_by_owner_and_job(db, owner_id, job_id)
        if pair is None:
            pair = MatchedPair(
                owner_id=owner_id,
                job_id=job_id,
                tailoring_status=initial_status,
                tailoring_attempts=0,
            )
            db.add(pair)
        for key, value in verdict.items():
            setattr(pair, key, value)
        db.commit()

    pair = get_by_owner_and_job(db, owner_id, job_id)
    db.refresh(pair)
    return pair


def get_by_id(db: Session, pair_id: str) -> Optional[MatchedPair]:
    return db.query(MatchedPair).filter(MatchedPair.id == pair_id).first()


def get_by_owner_and_job(db: Session, owner_id: str, job_id: str) -> Optional[MatchedPair]:
    return db.query(MatchedPair).filter(
        MatchedPair.owner_id == owner_id,
        MatchedPair.job_id == job_id
    ).first()


def get_by_campaign(db: Session, campaign_id: str, positive_only: bool = False) -> List[MatchedPair]:
    query = db.query(MatchedPair).filter(MatchedPair.campaign_id == campaign_id)
    if positive_only:
        query = query.filter(MatchedPair.is_positive.is_(True))
    return query.all()


def mark_processing(db: Session, pair: MatchedPair) -> MatchedPair:
    """Visible progress marker and weak lock against duplicate processing."""
    pair.tailoring_status = TailoringStatus.PROCESSING
    pair.tailoring_attempts = (pair.tailoring_attempts or 0) + 1
    pair.tailoring_error = None
    db.commit()
    db.refresh(pair)
    return pair


def mark_completed(db: Session, pair: MatchedPair, tailored_resume_id: str) -> MatchedPair:
    pair.tailoring_status = TailoringStatus.COMPLETED
    pair.tailored_resume_id = tailored_resume_id
    pair.tailoring_error = None
    db.commit()
    db.refresh(pair)
    return pair


def mark_failed(db: Session, pair: MatchedPair, error_message: str) -> MatchedPair:
    pair.tailoring_status = TailoringStatus.FAILED
    pair.tailoring_error = error_message
    db.commit()
    db.refresh(pair)
    return pair


def get_failed_for_retry(db: Session, max_attempts: int, limit: int = 100) -> List[MatchedPair]:
    """Failed tailoring jobs that still have retry budget left."""
    return (
        db.query(MatchedPair)
        .filter(
            MatchedPair.tailoring_status == TailoringStatus.FAILED,
            MatchedPair.tailoring_attempts < max_attempts
        )
        .limit(limit)
        .all()
    )


def reset_for_retry(db: Session, pair: MatchedPair) -> MatchedPair:
    pair.tailoring_status = TailoringStatus.PENDING
    db.commit()
    db.refresh(pair)
    return pair
