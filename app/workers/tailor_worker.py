"""
Tailor worker: one tailoring mission at a time.

Prefetch is 1 because a mission is two reasoning-model calls plus document
rendering; throughput comes from running more processes. The delivery is
always acknowledged, success or failure. Failed missions are retried only by
the failed-tailoring sweep (app.tasks.campaign_tasks).
"""

import logging
import time
from typing import Callable, Optional
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.queue import QueueClient, QueueMessage
from app.crud import matched_pair as crud_matched_pair
from app.crud import resume as crud_resume
from app.crud import scraped_job as crud_scraped_job
from app.crud import tailored_resume as crud_tailored_resume
from app.models.matched_pair import MatchedPair, TailoringStatus
from app.models.tailored_resume import ArtifactStatus, TailoredResume
from app.schemas.messages import TailorMission
from app.services.document_renderer import DocumentRenderer
from app.services.matching import ensure_resume_blueprint, job_prompt_text
from app.workers.base import PipelineWorker

logger = logging.getLogger(__name__)


class TailorWorker(PipelineWorker):
    """
    Args:
        queue: Connected QueueClient
        analyzer: Analyzer used for the plan and rewrite passes
        renderer: DocumentRenderer that produces the stored document
        include_interview_prep: Ask the rewrite pass for interview notes
    """

    role = "tailor"

    def __init__(
        self,
        queue: QueueClient,
        analyzer,
        renderer: DocumentRenderer,
        session_factory: Callable[[], Session] = SessionLocal,
        include_interview_prep: bool = True,
        campaign_id: Optional[str] = None,
        poll_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(queue, session_factory, campaign_id, poll_interval, clock)
        self.queue_name = self.scoped_queue(settings.TAILOR_QUEUE)
        self.prefetch = settings.TAILOR_PREFETCH
        self.analyzer = analyzer
        self.renderer = renderer
        self.include_interview_prep = include_interview_prep

    def handle(self, message: QueueMessage) -> None:
        mission = self.parse(message, TailorMission)
        if mission is None:
            return
        if not self.admit(message, mission.campaign_id, context=f"(match {mission.matched_pair_id})"):
            return

        try:
            self.tailor(mission)
        finally:
            if not message.settled:
                message.ack()

    def tailor(self, mission: TailorMission) -> Optional[TailoredResume]:
        context = f"match {mission.matched_pair_id}, job {mission.job_id}, campaign {mission.campaign_id}"
        db = self.session_factory()
        try:
            pair = crud_matched_pair.get_by_id(db, mission.matched_pair_id)
            if pair is None:
                logger.error(f"[Tailor] Matched pair not found ({context})")
                return None
            if pair.tailoring_status in (TailoringStatus.COMPLETED, TailoringStatus.SKIPPED):
                logger.info(f"[Tailor] Nothing to do, status is {pair.tailoring_status.value} ({context})")
                return None
            if pair.tailoring_status == TailoringStatus.PROCESSING:
                # Redelivery while another worker holds the match
                logger.warning(
                    f"[Tailor] Already processing (attempt {pair.tailoring_attempts}), skipping duplicate ({context})"
                )
                return None

            pair = crud_matched_pair.mark_processing(db, pair)
            logger.info(f"[Tailor] Tailoring attempt {pair.tailoring_attempts} ({context})")

            try:
                artifact = self._produce(db, pair, mission)
            except Exception as e:
                db.rollback()
                error = f"{type(e).__name__}: {e}"
                logger.error(f"[Tailor] Tailoring failed ({context}): {error}", exc_info=True)
                crud_tailored_resume.upsert_for_match(
                    db,
                    matched_pair_id=pair.id,
                    owner_id=pair.owner_id,
                    resume_id=mission.resume_id,
                    job_id=pair.job_id,
                    campaign_id=mission.campaign_id,
                    status=ArtifactStatus.FAILED,
                    error=error,
                )
                crud_matched_pair.mark_failed(db, pair, error)
                return None

            crud_matched_pair.mark_completed(db, pair, artifact.id)
            logger.info(f"[Tailor] Completed, artifact {artifact.id} at {artifact.document_path} ({context})")
            return artifact
        finally:
            db.close()

    def _produce(self, db: Session, pair: MatchedPair, mission: TailorMission) -> TailoredResume:
        job = crud_scraped_job.get_by_id(db, pair.job_id)
        if job is None:
            raise LookupError(f"Job {pair.job_id} not found")
        resume = crud_resume.get_by_id(db, mission.resume_id)
        if resume is None:
            raise LookupError(f"Resume {mission.resume_id} not found")

        blueprint = ensure_resume_blueprint(db, resume, self.analyzer)
        job_text = job_prompt_text(job)

        plan = self.analyzer.plan_tailoring(blueprint, job_text, pair.analysis_report or {})
        content = self.analyzer.rewrite_resume(
            resume.text_content, job_text, plan, include_interview_prep=self.include_interview_prep
        )
        document = self.renderer.render(
            content,
            owner_id=pair.owner_id,
            job_id=job.id,
            candidate_name=blueprint.contact.get("name"),
        )

        return crud_tailored_resume.upsert_for_match(
            db,
            matched_pair_id=pair.id,
            owner_id=pair.owner_id,
            resume_id=mission.resume_id,
            job_id=job.id,
            campaign_id=mission.campaign_id,
            status=ArtifactStatus.SUCCESS,
            content=content.model_dump(mode="json", exclude={"interview_prep"}),
            tailored_text=content.as_text(),
            master_plan=plan.model_dump(mode="json"),
            interview_prep=content.interview_prep.model_dump(mode="json") if content.interview_prep else None,
            document_path=document.path,
        )
