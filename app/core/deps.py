"""
FastAPI dependencies for the control API.

The queue client is opened once per API process in the lifespan handler and
stored on app.state; request handlers borrow it through get_queue_client.
"""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.queue import QueueClient
from app.services.campaign_service import CampaignService


def get_queue_client(request: Request) -> QueueClient:
    """
    Return the process-wide queue client.

    Raises:
        HTTPException 503: The API started without a broker connection
    """
    queue = getattr(request.app.state, "queue", None)
    if queue is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "queue_unavailable", "message": "Queue transport is not connected"}
        )
    return queue


def get_campaign_service(
    db: Session = Depends(get_db),
    queue: QueueClient = Depends(get_queue_client),
) -> CampaignService:
    return CampaignService(db, queue)


def get_readonly_campaign_service(db: Session = Depends(get_db)) -> CampaignService:
    """Controller without a queue, for stop/status/list which only touch the database."""
    return CampaignService(db)
