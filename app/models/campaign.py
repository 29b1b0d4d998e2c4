"""
Campaign model.

One end-to-end run of the pipeline for one owner/role/location. The status
column is the only cross-process mutable state the workers read: the
controller writes `stopped`, workers poll it at their checkpoints.
"""

import enum
from sqlalchemy import Boolean, Column, String, Integer, Text, DateTime, Enum, Index, func
from app.core.database import Base
from app.models.types import JSONDocument, new_id


class CampaignStatus(str, enum.Enum):
    """
    Campaign lifecycle:

    RUNNING -> STOPPED     (owner asked to stop)
    RUNNING -> COMPLETED   (stage counts stable, nothing left to tailor)
    RUNNING -> FAILED      (every scrape mission failed fatally)
    """
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"
    FAILED = "failed"


class Campaign(Base):
    __tablename__ = "campaigns"

    id = Column(String(64), primary_key=True, default=new_id)
    owner_id = Column(String(64), nullable=False, index=True)
    resume_id = Column(String(36), nullable=False)

    # Target parameters
    target_role = Column(String, nullable=False)
    target_location = Column(String, nullable=False, default="")

    status = Column(
        Enum(CampaignStatus, values_callable=lambda x: [e.value for e in x]),
        default=CampaignStatus.RUNNING,
        nullable=False,
        index=True
    )

    # Fan-out and failure bookkeeping
    scraper_instances = Column(Integer, nullable=False, default=1)
    scrapes_completed = Column(Integer, nullable=False, default=0)
    scrape_failures = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    # Missions routed to per-campaign queues served by scoped workers
    dedicated_workers = Column(Boolean, nullable=False, default=False)

    # Completion detection: last observed stage counts and how many
    # consecutive sweeps saw them unchanged
    last_stats = Column(JSONDocument, nullable=True)
    stable_polls = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    stopped_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_campaigns_owner_status', 'owner_id', 'status'),
    )

    def __repr__(self):
        return f"<Campaign(id={self.id}, owner_id={self.owner_id}, status={self.status.value})>"
