"""
Matcher worker: match missions in, MatchedPairs and tailor missions out.

Deliveries are accumulated into batches of MATCH_BATCH_SIZE, or flushed
MATCH_BATCH_TIMEOUT_SECONDS after the first unflushed delivery, whichever
comes first. The batch is the unit of acknowledgement: every processed message
is acked together when the batch succeeds, and every unsettled message is
rejected without requeue when it fails (a poison batch is never redelivered).

Per job:
1. Load job and resume; reuse or create the resume blueprint
2. Infer hiring priorities, then apply the location-flexibility override
3. Ask for a decision (malformed responses retried inside the Analyzer)
4. Upsert the MatchedPair; publish a tailor mission for positive decisions
"""

import logging
import time
from typing import Callable, List, Optional, Tuple
from sqlalchemy.orm import Session
from app.core.batching import BatchAccumulator
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.queue import QueueClient, QueueMessage, campaign_queue
from app.crud import matched_pair as crud_matched_pair
from app.crud import resume as crud_resume
from app.crud import scraped_job as crud_scraped_job
from app.models.matched_pair import MatchedPair
from app.models.scraped_job import Relevance
from app.schemas.messages import MatchMission, TailorMission
from app.services.matching import (
    apply_location_flexibility,
    confidence_for_decision,
    ensure_resume_blueprint,
    inject_flexibility_statement,
    is_positive_decision,
    job_prompt_text,
)
from app.workers.base import PipelineWorker

logger = logging.getLogger(__name__)

Delivery = Tuple[QueueMessage, MatchMission]


class MatcherWorker(PipelineWorker):
    """
    Args:
        queue: Connected QueueClient
        analyzer: Analyzer used for blueprints, priorities and decisions
        batch_size: Deliveries per batch (also the consumer prefetch)
        batch_timeout: Seconds a partial batch may wait before it is flushed
    """

    role = "matcher"

    def __init__(
        self,
        queue: QueueClient,
        analyzer,
        session_factory: Callable[[], Session] = SessionLocal,
        batch_size: Optional[int] = None,
        batch_timeout: Optional[float] = None,
        campaign_id: Optional[str] = None,
        poll_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(queue, session_factory, campaign_id, poll_interval, clock)
        self.queue_name = self.scoped_queue(settings.MATCH_QUEUE)
        self.analyzer = analyzer
        self.batch: BatchAccumulator[Delivery] = BatchAccumulator(
            max_size=batch_size or settings.MATCH_BATCH_SIZE,
            timeout_seconds=batch_timeout or settings.MATCH_BATCH_TIMEOUT_SECONDS,
            clock=clock,
        )
        # Hold a whole batch unacknowledged
        self.prefetch = self.batch.max_size

    # ------------------------------------------------------------------
    # Queue callbacks
    # ------------------------------------------------------------------

    def handle(self, message: QueueMessage) -> None:
        mission = self.parse(message, MatchMission)
        if mission is None:
            return
        if not self.admit(message, mission.campaign_id, context=f"(job {mission.job_id})"):
            return

        full_batch = self.batch.add((message, mission))
        if full_batch:
            self.process_batch(full_batch)

    def on_tick(self) -> None:
        if self.batch.due():
            self.process_batch(self.batch.flush())

    def next_poll_timeout(self) -> float:
        remaining = self.batch.seconds_until_due()
        if remaining is None:
            return self.poll_timeout
        return max(0.01, min(self.poll_timeout, remaining))

    def on_shutdown(self) -> None:
        held = self.batch.flush()
        if held:
            logger.info(f"[Matcher] Returning {len(held)} unprocessed message(s) to the queue")
        for message, _ in held:
            message.nack(requeue=True)

    # ------------------------------------------------------------------
    # Batch processing
    # ------------------------------------------------------------------

    def process_batch(self, batch: List[Delivery]) -> None:
        if not batch:
            return
        logger.info(f"[Matcher] Processing batch of {len(batch)}")

        db = self.session_factory()
        try:
            for message, mission in batch:
                if message.settled:
                    continue
                if self.token_for(mission.campaign_id).is_cancelled():
                    self.release_cancelled(message, mission.campaign_id, context=f"(job {mission.job_id})")
                    continue
                self.match_one(db, mission)
        except Exception as e:
            db.rollback()
            logger.error(
                f"[Matcher] Batch of {len(batch)} failed, rejecting without requeue: {e}",
                exc_info=True,
            )
            for message, mission in batch:
                if not message.settled:
                    logger.error(f"[Matcher] Rejected job {mission.job_id} (campaign {mission.campaign_id})")
                    message.nack(requeue=False)
            return
        finally:
            db.close()

        for message, _ in batch:
            if not message.settled:
                message.ack()

    def match_one(self, db: Session, mission: MatchMission) -> Optional[MatchedPair]:
        """
        Produce the MatchedPair for one job. Returns None when the job is
        skipped (missing rows, or already matched for this owner).
        """
        context = f"job {mission.job_id}, campaign {mission.campaign_id}"

        job = crud_scraped_job.get_by_id(db, mission.job_id)
        if job is None:
            logger.warning(f"[Matcher] Job not found, skipping ({context})")
            return None

        existing = crud_matched_pair.get_by_owner_and_job(db, mission.owner_id, job.id)
        if existing is not None:
            logger.info(f"[Matcher] Already matched as {existing.decision}, skipping ({context})")
            return None

        resume = crud_resume.get_by_id(db, mission.resume_id)
        if resume is None:
            logger.warning(f"[Matcher] Resume {mission.resume_id} not found, skipping ({context})")
            return None

        blueprint = ensure_resume_blueprint(db, resume, self.analyzer)
        job_text = job_prompt_text(job)

        priorities = apply_location_flexibility(self.analyzer.infer_hiring_priorities(job_text))
        decision = self.analyzer.decide(job_text, inject_flexibility_statement(blueprint), priorities)

        label = decision.recommendation
        positive = is_positive_decision(label)
        pair = crud_matched_pair.upsert(
            db,
            owner_id=mission.owner_id,
            job_id=job.id,
            resume_id=mission.resume_id,
            campaign_id=mission.campaign_id,
            decision=label,
            is_positive=positive,
            confidence=confidence_for_decision(label),
            reasoning=decision.summary,
            analysis_report={
                "priorities": priorities.model_dump(mode="json"),
                "decision": decision.model_dump(mode="json"),
            },
        )
        crud_scraped_job.set_relevance(db, job, Relevance.RELEVANT if positive else Relevance.IRRELEVANT)
        logger.info(f"[Matcher] {label} (confidence {pair.confidence:.2f}) for {job.title} @ {job.company_name} ({context})")

        if positive:
            self.queue.publish(
                campaign_queue(settings.TAILOR_QUEUE, mission.campaign_id if mission.dedicated else None),
                TailorMission(
                    job_id=job.id,
                    matched_pair_id=pair.id,
                    campaign_id=mission.campaign_id,
                    resume_id=mission.resume_id,
                    dedicated=mission.dedicated,
                ),
            )
        return pair
