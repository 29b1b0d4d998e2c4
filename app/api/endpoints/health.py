"""
Health check endpoints.

Provides status for the database and the queue transport.
"""

import logging
from typing import Dict, Any
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone

from app.core.database import get_db

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    """
    Basic health check endpoint.

    Returns 200 OK if the service is running.
    """
    return {
        "status": "healthy",
        "timestamp": _timestamp()
    }


@router.get("/health/detailed", status_code=status.HTTP_200_OK)
def detailed_health_check(request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """
    Detailed health check with dependency status.

    Checks:
    - Database connectivity
    - Queue transport connection held by this API process
    """
    health_status = {
        "status": "healthy",
        "timestamp": _timestamp(),
        "checks": {}
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful"
        }
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = {
            "status": "unhealthy",
            "message": f"Database error: {str(e)}"
        }

    queue = getattr(request.app.state, "queue", None)
    if queue is not None and queue.is_connected:
        health_status["checks"]["queue"] = {
            "status": "healthy",
            "message": "Broker connection open"
        }
    else:
        health_status["status"] = "unhealthy"
        health_status["checks"]["queue"] = {
            "status": "unhealthy",
            "message": "Broker connection not available"
        }

    return health_status
