"""
Resume model.

The candidate's master resume. `blueprint` caches the Analyzer's structured
summary so it is generated once per resume, not once per job.
"""

from sqlalchemy import Column, String, Text, Boolean, DateTime, func
from app.core.database import Base
from app.models.types import JSONDocument, new_id


class Resume(Base):
    __tablename__ = "resumes"

    id = Column(String(36), primary_key=True, default=new_id)
    owner_id = Column(String(64), nullable=False, index=True)
    original_name = Column(String, nullable=True)
    file_path = Column(String, nullable=True)
    text_content = Column(Text, nullable=False)
    is_master = Column(Boolean, nullable=False, default=False)

    blueprint = Column(JSONDocument, nullable=True)
    blueprint_generated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Resume(id={self.id}, owner_id={self.owner_id})>"
