from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class CampaignStatusEnum(str, Enum):
    """Campaign lifecycle status"""
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"
    FAILED = "failed"


class InstanceCounts(BaseModel):
    """How many scrape missions to fan out for a campaign"""
    scrapers: int = Field(1, ge=1, le=20)


class CampaignLaunchRequest(BaseModel):
    """Schema for launching a campaign"""
    owner_id: str = Field(..., min_length=1)
    target_role: str = Field(..., min_length=1, max_length=200)
    target_location: str = Field("", max_length=200)
    resume_id: str = Field(..., min_length=1)
    instance_counts: InstanceCounts = Field(default_factory=InstanceCounts)
    campaign_id: Optional[str] = Field(None, min_length=1, max_length=64)
    dedicated_workers: bool = False


class CampaignLaunchResponse(BaseModel):
    campaign_id: str
    status: CampaignStatusEnum
    message: str


class CampaignStopRequest(BaseModel):
    owner_id: str = Field(..., min_length=1)


class CampaignStats(BaseModel):
    """
    Stage counts computed on demand from the three work-item stores.

    jobs_pending is always jobs_matched - jobs_tailored.
    """
    jobs_scraped: int
    jobs_matched: int
    jobs_pending: int
    jobs_tailored: int
    jobs_rejected: int = 0
    tailoring_failed: int = 0


class CampaignStatusResponse(BaseModel):
    campaign_id: str
    status: CampaignStatusEnum
    target_role: str
    target_location: str
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    stats: CampaignStats


class CampaignResponse(BaseModel):
    id: str
    owner_id: str
    target_role: str
    target_location: str
    status: CampaignStatusEnum
    scraper_instances: int
    dedicated_workers: bool = False
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True  # Allows conversion from SQLAlchemy models
