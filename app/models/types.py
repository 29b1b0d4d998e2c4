"""
Column types shared by the pipeline models.

JSONB on PostgreSQL, plain JSON elsewhere (the test suite runs on SQLite).
"""

import uuid
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def new_id() -> str:
    """Opaque string identifier used as primary key for pipeline records."""
    return str(uuid.uuid4())
