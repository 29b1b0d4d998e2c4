"""
Worker process bootstrap.

Fatal conditions (database or broker unreachable at boot) log CRITICAL and
return exit status 1 without processing anything; supervision and restart are
left to the process manager.
"""

import logging
import signal
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from app.core.config import settings
from app.core.database import check_database_connection
from app.core.logging_config import setup_logging
from app.core.queue import QueueClient, QueueConnectionError
from app.workers.base import PipelineWorker

logger = logging.getLogger(__name__)

WORKER_ROLES = ("scraper", "matcher", "tailor")


def build_worker(role: str, queue: QueueClient, campaign_id: Optional[str] = None) -> PipelineWorker:
    """Wire a worker with its production collaborators."""
    from app.services.analyzer import Analyzer

    if role == "scraper":
        from app.services.linkedin_scraper import LinkedInScraper
        from app.workers.scraper_worker import ScraperWorker
        return ScraperWorker(queue, scraper_factory=LinkedInScraper, analyzer=Analyzer(), campaign_id=campaign_id)
    if role == "matcher":
        from app.workers.matcher_worker import MatcherWorker
        return MatcherWorker(queue, analyzer=Analyzer(), campaign_id=campaign_id)
    if role == "tailor":
        from app.services.document_renderer import DocxResumeRenderer
        from app.workers.tailor_worker import TailorWorker
        return TailorWorker(queue, analyzer=Analyzer(), renderer=DocxResumeRenderer(), campaign_id=campaign_id)
    raise ValueError(f"Unknown worker role '{role}'. Expected one of: {', '.join(WORKER_ROLES)}")


def run_worker(role: str, campaign_id: Optional[str] = None) -> int:
    """
    Run one worker until it is stopped.

    Returns:
        int: Process exit status (0 clean shutdown, 1 fatal bootstrap error)
    """
    setup_logging(settings.LOG_LEVEL, settings.JSON_LOGS, worker_role=role)

    try:
        check_database_connection()
    except SQLAlchemyError as e:
        logger.critical(f"[{role.capitalize()}] Database unreachable at startup: {e}")
        return 1

    queue = QueueClient()
    try:
        queue.connect()
    except QueueConnectionError as e:
        logger.critical(f"[{role.capitalize()}] {e}")
        return 1

    try:
        worker = build_worker(role, queue, campaign_id=campaign_id)

        def _stop(signum, frame):
            logger.info(f"[{role.capitalize()}] Received signal {signum}, finishing current work")
            worker.request_stop()

        signal.signal(signal.SIGINT, _stop)
        signal.signal(signal.SIGTERM, _stop)

        worker.run()
    finally:
        queue.close()
    return 0
