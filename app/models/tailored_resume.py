"""
TailoredResume model: the artifact produced by the tailor worker.

One row per matched pair. Re-tailoring the same pair updates the row in place.
"""

import enum
from sqlalchemy import Column, String, Text, DateTime, Enum, func
from app.core.database import Base
from app.models.types import JSONDocument, new_id


class ArtifactStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class TailoredResume(Base):
    __tablename__ = "tailored_resumes"

    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(64), nullable=False, index=True)
    resume_id = Column(String(36), nullable=False)
    job_id = Column(String(36), nullable=False, index=True)
    matched_pair_id = Column(String(36), nullable=False, unique=True)
    campaign_id = Column(String(64), nullable=False, index=True)

    status = Column(
        Enum(ArtifactStatus, values_callable=lambda x: [e.value for e in x]),
        default=ArtifactStatus.PENDING,
        nullable=False,
        index=True
    )

    # Rewritten sections, the gap-analysis plan behind them, and optional prep notes
    content = Column(JSONDocument, nullable=True)
    tailored_text = Column(Text, nullable=True)
    master_plan = Column(JSONDocument, nullable=True)
    interview_prep = Column(JSONDocument, nullable=True)

    document_path = Column(String, nullable=True)  # S3 URI or local path
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<TailoredResume(matched_pair_id={self.matched_pair_id}, status={self.status.value})>"
