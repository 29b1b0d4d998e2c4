"""
Cooperative, poll-based campaign cancellation.

Workers share no memory with the controller; the campaign's status column is
the only signal. A CampaignCancellationToken wraps that column read behind a
small cache so a tight loop (scraper cards, matcher jobs) does not hammer the
database, while still noticing a stop within one poll interval.

Cancellation is advisory: an in-flight browser or LLM call is never
interrupted. Callers check the token at their checkpoints.
"""

import logging
import time
from typing import Callable, Optional
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import SessionLocal
from app.crud import campaign as crud_campaign
from app.models.campaign import CampaignStatus

logger = logging.getLogger(__name__)

CANCELLED_STATUSES = frozenset({CampaignStatus.STOPPED, CampaignStatus.FAILED})


class CampaignCancellationToken:
    """
    Answers "should work for this campaign stop?".

    Args:
        campaign_id: Campaign to watch
        session_factory: Callable returning a new Session
        poll_interval: Minimum seconds between status reads (0 reads every time)
        clock: Injected for tests
    """

    def __init__(
        self,
        campaign_id: str,
        session_factory: Callable[[], Session] = SessionLocal,
        poll_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.campaign_id = campaign_id
        self._session_factory = session_factory
        self.poll_interval = settings.CANCELLATION_POLL_SECONDS if poll_interval is None else poll_interval
        self._clock = clock
        self._last_polled_at: Optional[float] = None
        self._cancelled = False
        self.reason: Optional[str] = None

    def is_cancelled(self) -> bool:
        # Cancellation is terminal; once seen it is never re-read
        if self._cancelled:
            return True

        now = self._clock()
        if self._last_polled_at is not None and now - self._last_polled_at < self.poll_interval:
            return False
        self._last_polled_at = now

        db = self._session_factory()
        try:
            status = crud_campaign.get_status(db, self.campaign_id)
        finally:
            db.close()

        if status is None:
            self.reason = "missing"
        elif status in CANCELLED_STATUSES:
            self.reason = status.value
        else:
            return False

        self._cancelled = True
        logger.info(f"Campaign {self.campaign_id} cancelled ({self.reason})")
        return True
