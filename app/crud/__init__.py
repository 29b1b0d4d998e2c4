"""
CRUD operations (Create, Read, Update, Delete) for database models.

This layer provides a clean separation between workers/API routes and database
operations, following the Repository pattern.
"""

from app.crud import campaign, scraped_job, matched_pair, tailored_resume, resume

__all__ = ["campaign", "scraped_job", "matched_pair", "tailored_resume", "resume"]
