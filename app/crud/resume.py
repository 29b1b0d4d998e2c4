"""
CRUD operations for Resume model.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from app.models.resume import Resume


def create(db: Session, owner_id: str, text_content: str, original_name: Optional[str] = None, is_master: bool = False) -> Resume:
    resume = Resume(
        owner_id=owner_id,
        text_content=text_content,
        original_name=original_name,
        is_master=is_master,
    )
    db.add(resume)
    db.commit()
    db.refresh(resume)
    return resume


def get_by_id(db: Session, resume_id: str) -> Optional[Resume]:
    return db.query(Resume).filter(Resume.id == resume_id).first()


def get_for_owner(db: Session, resume_id: str, owner_id: str) -> Optional[Resume]:
    return db.query(Resume).filter(
        Resume.id == resume_id,
        Resume.owner_id == owner_id
    ).first()


def save_blueprint(db: Session, resume: Resume, blueprint: Dict[str, Any]) -> Resume:
    """Persist the Analyzer's resume blueprint so it is generated only once."""
    resume.blueprint = blueprint
    resume.blueprint_generated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(resume)
    return resume
