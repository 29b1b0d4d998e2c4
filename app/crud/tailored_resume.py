"""
CRUD operations for TailoredResume model.
"""

from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from app.models.tailored_resume import TailoredResume, ArtifactStatus


def upsert_for_match(
    db: Session,
    matched_pair_id: str,
    owner_id: str,
    resume_id: str,
    job_id: str,
    campaign_id: str,
    status: ArtifactStatus,
    content: Optional[Dict[str, Any]] = None,
    tailored_text: Optional[str] = None,
    master_plan: Optional[Dict[str, Any]] = None,
    interview_prep: Optional[Dict[str, Any]] = None,
    document_path: Optional[str] = None,
    error: Optional[str] = None,
) -> TailoredResume:
    """
    Store the tailoring outcome for a matched pair.

    Re-tailoring the same pair overwrites the previous artifact instead of
    adding a second one.

    Returns:
        The stored TailoredResume
    """
    artifact = get_by_matched_pair(db, matched_pair_id)
    if artifact is None:
        artifact = TailoredResume(matched_pair_id=matched_pair_id)
        db.add(artifact)

    artifact.owner_id = owner_id
    artifact.resume_id = resume_id
    artifact.job_id = job_id
    artifact.campaign_id = campaign_id
    artifact.status = status
    artifact.content = content
    artifact.tailored_text = tailored_text
    artifact.master_plan = master_plan
    artifact.interview_prep = interview_prep
    artifact.document_path = document_path
    artifact.error = error

    db.commit()
    db.refresh(artifact)
    return artifact


def get_by_id(db: Session, artifact_id: str) -> Optional[TailoredResume]:
    return db.query(TailoredResume).filter(TailoredResume.id == artifact_id).first()


def get_by_matched_pair(db: Session, matched_pair_id: str) -> Optional[TailoredResume]:
    return db.query(TailoredResume).filter(TailoredResume.matched_pair_id == matched_pair_id).first()
