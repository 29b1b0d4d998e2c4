import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.deps import get_campaign_service, get_readonly_campaign_service
from app.schemas.campaign import (
    CampaignLaunchRequest,
    CampaignLaunchResponse,
    CampaignResponse,
    CampaignStatusEnum,
    CampaignStatusResponse,
    CampaignStopRequest,
)
from app.services.campaign_service import CampaignError, CampaignService

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])
logger = logging.getLogger(__name__)


def _http_error(error: CampaignError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.to_payload())


@router.post("/", status_code=201, response_model=CampaignLaunchResponse)
def launch_campaign(
    request: CampaignLaunchRequest,
    service: CampaignService = Depends(get_campaign_service),
):
    """
    Launch a campaign and fan out scrape missions.

    Returns as soon as the campaign row exists and the missions are on the
    scrape queue. Scraping, matching and tailoring run in worker processes.

    Use GET /campaigns/{campaign_id}/status?owner_id=... to follow progress.
    """
    try:
        campaign = service.launch(request)
    except CampaignError as e:
        logger.warning(f"Launch rejected for owner {request.owner_id}: {e.message}")
        raise _http_error(e)

    return CampaignLaunchResponse(
        campaign_id=campaign.id,
        status=CampaignStatusEnum.RUNNING,
        message=f"Campaign launched with {campaign.scraper_instances} scrape mission(s) queued."
    )


@router.post("/{campaign_id}/stop", response_model=CampaignResponse)
def stop_campaign(
    campaign_id: str,
    request: CampaignStopRequest,
    service: CampaignService = Depends(get_readonly_campaign_service),
):
    """
    Mark the campaign STOPPED. Workers observe the change at their next
    checkpoint; work already in flight may finish.
    """
    try:
        return service.stop(campaign_id, request.owner_id)
    except CampaignError as e:
        raise _http_error(e)


@router.get("/{campaign_id}/status", response_model=CampaignStatusResponse)
def get_campaign_status(
    campaign_id: str,
    owner_id: str = Query(..., min_length=1),
    service: CampaignService = Depends(get_readonly_campaign_service),
):
    """
    Campaign status with stage counts computed from the work-item stores.

    Counts are read independently and are not a transactional snapshot.
    """
    try:
        return service.status(campaign_id, owner_id)
    except CampaignError as e:
        raise _http_error(e)


@router.get("/", response_model=List[CampaignResponse])
def list_campaigns(
    owner_id: str = Query(..., min_length=1),
    skip: int = 0,
    limit: int = 100,
    service: CampaignService = Depends(get_readonly_campaign_service),
):
    """
    List an owner's campaigns, newest first.

    Args:
        owner_id: Owner whose campaigns to list
        skip: Number of records to skip (default: 0)
        limit: Maximum number of records to return (default: 100, max: 100)
    """
    if limit > 100:
        limit = 100
    return service.list_for_owner(owner_id, skip=skip, limit=limit)
