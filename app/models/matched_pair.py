"""
MatchedPair model: the matcher's verdict for one (owner, job).

Exactly one row per (owner_id, job_id); a second match for the same pair
updates the existing row. The tailoring status is only ever moved forward by
the tailor worker (or reset by the failed-tailoring sweep).
"""

import enum
from sqlalchemy import Column, String, Float, Integer, Text, Boolean, DateTime, Enum, ForeignKey, UniqueConstraint, Index, func
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.types import JSONDocument, new_id


class TailoringStatus(str, enum.Enum):
    """
    PENDING -> PROCESSING -> COMPLETED
                    ↓
                 FAILED

    SKIPPED marks REJECT decisions, which are never tailored.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class MatchedPair(Base):
    __tablename__ = "matched_pairs"

    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(64), nullable=False, index=True)
    job_id = Column(String(36), ForeignKey("scraped_jobs.id"), nullable=False, index=True)
    resume_id = Column(String(36), nullable=False)
    campaign_id = Column(String(64), nullable=False, index=True)

    # Verdict
    decision = Column(String(32), nullable=False)
    is_positive = Column(Boolean, nullable=False, default=False)
    confidence = Column(Float, nullable=False)
    reasoning = Column(Text, nullable=True)
    analysis_report = Column(JSONDocument, nullable=True)

    # Tailoring stage
    tailoring_status = Column(
        Enum(TailoringStatus, values_callable=lambda x: [e.value for e in x]),
        default=TailoringStatus.PENDING,
        nullable=False,
        index=True
    )
    tailored_resume_id = Column(String(36), nullable=True)
    tailoring_error = Column(Text, nullable=True)
    tailoring_attempts = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    job = relationship("ScrapedJob")

    __table_args__ = (
        UniqueConstraint('owner_id', 'job_id', name='uq_matched_pairs_owner_job'),
        Index('ix_matched_pairs_campaign_positive', 'campaign_id', 'is_positive'),
    )

    def __repr__(self):
        return f"<MatchedPair(job_id={self.job_id}, decision={self.decision}, tailoring={self.tailoring_status.value})>"
