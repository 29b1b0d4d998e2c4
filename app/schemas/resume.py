"""
Pydantic schemas for Resume API requests/responses.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ResumeCreateRequest(BaseModel):
    """Master resume submitted as plain text."""
    owner_id: str = Field(..., min_length=1)
    text_content: str = Field(..., min_length=50, description="Full resume text")
    original_name: Optional[str] = Field(None, max_length=255)


class ResumeResponse(BaseModel):
    id: str
    owner_id: str
    original_name: Optional[str] = None
    is_master: bool
    blueprint: Optional[Dict[str, Any]] = Field(None, description="Cached Analyzer summary, filled on first match")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
