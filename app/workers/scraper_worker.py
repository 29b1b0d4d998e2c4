"""
Scraper worker: scrape missions in, ScrapedJobs and match missions out.

Per mission the worker walks the state machine

    idle -> navigating -> searching -> filtering -> listing
         -> (per card: opening -> extracting -> persisting)
         -> paginating -> done | failed | cancelled

Termination is guaranteed by two bounds: SCRAPER_MAX_IDLE_ATTEMPTS
consecutive listing passes that surface no new card, and SCRAPER_MAX_PAGES.
A failing card is skipped; a failing capability step fails the mission and
is recorded on the campaign.
"""

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Set
from sqlalchemy.orm import Session
from app.core.cancellation import CampaignCancellationToken
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.queue import QueueClient, QueueMessage, campaign_queue
from app.crud import campaign as crud_campaign
from app.crud import scraped_job as crud_scraped_job
from app.models.campaign import CampaignStatus
from app.schemas.messages import MatchMission, ScrapeMission
from app.services.job_normalizer import normalize_posting
from app.services.scraper_base import CardExtractionError, DataIntegrityError, JobCard, JobScraper
from app.workers.base import PipelineWorker

logger = logging.getLogger(__name__)


class ScraperState(str, enum.Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    SEARCHING = "searching"
    FILTERING = "filtering"
    LISTING = "listing"
    OPENING = "opening"
    EXTRACTING = "extracting"
    PERSISTING = "persisting"
    PAGINATING = "paginating"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ScrapeReport:
    """Outcome of one scrape mission."""
    campaign_id: str
    state: ScraperState = ScraperState.IDLE
    cards_seen: int = 0
    saved: int = 0
    duplicates: int = 0
    failed: int = 0
    pages: int = 1
    error: Optional[str] = None


class ScraperWorker(PipelineWorker):
    """
    Args:
        queue: Connected QueueClient
        scraper_factory: Returns a fresh JobScraper per mission
        analyzer: Optional Analyzer for description parsing
        max_idle_attempts: Consecutive no-progress listing passes before giving up
        max_pages: Pagination ceiling per mission
    """

    role = "scraper"
    prefetch = 1

    def __init__(
        self,
        queue: QueueClient,
        scraper_factory: Callable[[], JobScraper],
        analyzer=None,
        session_factory: Callable[[], Session] = SessionLocal,
        max_idle_attempts: Optional[int] = None,
        max_pages: Optional[int] = None,
        campaign_id: Optional[str] = None,
        poll_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(queue, session_factory, campaign_id, poll_interval, clock)
        self.queue_name = self.scoped_queue(settings.SCRAPE_QUEUE)
        self.scraper_factory = scraper_factory
        self.analyzer = analyzer
        self.max_idle_attempts = max_idle_attempts or settings.SCRAPER_MAX_IDLE_ATTEMPTS
        self.max_pages = max_pages or settings.SCRAPER_MAX_PAGES

    def handle(self, message: QueueMessage) -> None:
        mission = self.parse(message, ScrapeMission)
        if mission is None:
            return
        if not self.admit(message, mission.campaign_id, context=f"(scrape '{mission.target_role}')"):
            return

        try:
            report = self.run_mission(mission)
        finally:
            # Mission outcome is persisted (jobs, or failure on the campaign); never redeliver
            if not message.settled:
                message.ack()

        if report.state == ScraperState.CANCELLED and self.campaign_id:
            self.request_stop()

    def run_mission(self, mission: ScrapeMission) -> ScrapeReport:
        token = self.token_for(mission.campaign_id)
        report = ScrapeReport(campaign_id=mission.campaign_id)
        logger.info(
            f"[Scraper] Mission started: '{mission.target_role}' in '{mission.target_location}' "
            f"(campaign {mission.campaign_id})"
        )

        try:
            with self.scraper_factory() as scraper:
                report.state = ScraperState.NAVIGATING
                scraper.navigate_to_jobs()

                report.state = ScraperState.SEARCHING
                scraper.search(mission.target_role, mission.target_location)

                report.state = ScraperState.FILTERING
                scraper.apply_filters()

                self._scrape_listing(scraper, mission, token, report)
        except Exception as e:
            failed_in = report.state.value
            report.state = ScraperState.FAILED
            report.error = f"{type(e).__name__} while {failed_in}: {e}"
            logger.error(f"[Scraper] Mission failed (campaign {mission.campaign_id}): {report.error}", exc_info=True)
            self._record_failure(mission.campaign_id, report.error)
            return report

        logger.info(
            f"[Scraper] Mission {report.state.value} (campaign {mission.campaign_id}): "
            f"{report.saved} saved, {report.duplicates} duplicates, {report.failed} failed, "
            f"{report.pages} page(s)"
        )
        if report.state == ScraperState.DONE:
            self._record_completion(mission.campaign_id)
        return report

    def _scrape_listing(
        self,
        scraper: JobScraper,
        mission: ScrapeMission,
        token: CampaignCancellationToken,
        report: ScrapeReport,
    ) -> None:
        seen: Set[str] = set()
        idle_attempts = 0

        while True:
            report.state = ScraperState.LISTING
            if token.is_cancelled():
                report.state = ScraperState.CANCELLED
                return

            fresh = [card for card in scraper.visible_cards() if card.posting_id not in seen]
            if fresh:
                idle_attempts = 0
                for card in fresh:
                    if token.is_cancelled():
                        report.state = ScraperState.CANCELLED
                        return
                    seen.add(card.posting_id)
                    report.cards_seen += 1
                    self._process_card(scraper, card, mission, report)
            else:
                idle_attempts += 1
                if idle_attempts >= self.max_idle_attempts:
                    logger.info(f"[Scraper] No new cards after {idle_attempts} attempts, stopping")
                    break

            if scraper.load_more():
                continue

            report.state = ScraperState.PAGINATING
            if token.is_cancelled():
                report.state = ScraperState.CANCELLED
                return
            if report.pages >= self.max_pages:
                logger.info(f"[Scraper] Page limit {self.max_pages} reached")
                break
            if not scraper.next_page():
                break
            report.pages += 1

        report.state = ScraperState.DONE

    def _process_card(
        self,
        scraper: JobScraper,
        card: JobCard,
        mission: ScrapeMission,
        report: ScrapeReport,
    ) -> None:
        db = self.session_factory()
        try:
            if crud_scraped_job.exists_by_url(db, card.url):
                report.duplicates += 1
                logger.debug(f"[Scraper] Duplicate skipped: {card.url}")
                return

            report.state = ScraperState.OPENING
            raw = scraper.extract(card)

            report.state = ScraperState.EXTRACTING
            fields = normalize_posting(raw, analyzer=self.analyzer)

            report.state = ScraperState.PERSISTING
            job, created = crud_scraped_job.create_if_absent(
                db,
                owner_id=mission.owner_id,
                campaign_id=mission.campaign_id,
                **fields,
            )
            if not created:
                report.duplicates += 1
                logger.debug(f"[Scraper] Lost insert race, already stored: {job.url}")
                return

            report.saved += 1
            self.queue.publish(
                campaign_queue(settings.MATCH_QUEUE, mission.campaign_id if mission.dedicated else None),
                MatchMission(
                    job_id=job.id,
                    campaign_id=mission.campaign_id,
                    owner_id=mission.owner_id,
                    resume_id=mission.resume_id,
                    dedicated=mission.dedicated,
                ),
            )
            logger.info(f"[Scraper] Saved job {job.id}: {job.title} @ {job.company_name} (campaign {mission.campaign_id})")
        except (CardExtractionError, DataIntegrityError) as e:
            report.failed += 1
            logger.warning(f"[Scraper] Skipping card {card.posting_id} (campaign {mission.campaign_id}): {e}")
        finally:
            db.close()
            report.state = ScraperState.LISTING

    def _record_completion(self, campaign_id: str) -> None:
        db = self.session_factory()
        try:
            crud_campaign.record_scrape_completion(db, campaign_id)
        finally:
            db.close()

    def _record_failure(self, campaign_id: str, error: str) -> None:
        db = self.session_factory()
        try:
            campaign = crud_campaign.record_scrape_failure(db, campaign_id, error)
            if campaign is not None and campaign.status == CampaignStatus.FAILED:
                logger.error(f"[Scraper] Campaign {campaign_id} marked failed: every scrape mission failed")
        finally:
            db.close()
