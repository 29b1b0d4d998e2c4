"""
Database models package.
"""

from app.models.campaign import Campaign, CampaignStatus
from app.models.scraped_job import ScrapedJob, Relevance
from app.models.matched_pair import MatchedPair, TailoringStatus
from app.models.tailored_resume import TailoredResume, ArtifactStatus
from app.models.resume import Resume

__all__ = [
    "Campaign", "CampaignStatus",
    "ScrapedJob", "Relevance",
    "MatchedPair", "TailoringStatus",
    "TailoredResume", "ArtifactStatus",
    "Resume",
]
