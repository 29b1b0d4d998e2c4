"""
ScrapedJob model.

One job posting discovered by a scraper worker. The posting URL is the
natural key: the table is append-only across repeated runs and inserts go
through an atomic insert-if-absent (see crud.scraped_job.create_if_absent).
"""

import enum
from sqlalchemy import Column, String, Boolean, Text, DateTime, Enum, Index, func
from app.core.database import Base
from app.models.types import JSONDocument, new_id


class Relevance(str, enum.Enum):
    """Tri-state relevance flag, set implicitly by the matcher."""
    PENDING = "pending"
    RELEVANT = "relevant"
    IRRELEVANT = "irrelevant"


class ScrapedJob(Base):
    __tablename__ = "scraped_jobs"

    id = Column(String(36), primary_key=True, default=new_id)
    url = Column(String, nullable=False, unique=True)
    posting_id = Column(String(64), nullable=True, index=True)

    title = Column(String, nullable=False)
    company_name = Column(String, nullable=False)
    company_url = Column(String, nullable=True)
    location = Column(String, nullable=True)

    # {"role_overview": str, "responsibilities": [...], "qualifications": [...], "benefits": [...]}
    description = Column(JSONDocument, nullable=True)
    posted_at = Column(DateTime(timezone=True), nullable=True)

    owner_id = Column(String(64), nullable=False, index=True)
    campaign_id = Column(String(64), nullable=False, index=True)

    relevance = Column(
        Enum(Relevance, values_callable=lambda x: [e.value for e in x]),
        default=Relevance.PENDING,
        nullable=False
    )
    is_deleted = Column(Boolean, nullable=False, default=False)

    scraped_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_scraped_jobs_campaign_deleted', 'campaign_id', 'is_deleted'),
    )

    def __repr__(self):
        return f"<ScrapedJob(id={self.id}, title='{self.title}', company='{self.company_name}')>"
