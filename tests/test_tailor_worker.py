"""
Tests for the tailor worker.

Tests cover:
- Successful tailoring: artifact, document, match status
- Failure recording without redelivery
- Idempotent handling of already completed matches
- Cancellation handling
"""

import os

from app.core.config import settings
from app.crud import campaign as campaign_crud
from app.crud import matched_pair as matched_pair_crud
from app.crud import scraped_job as scraped_job_crud
from app.crud import tailored_resume as tailored_resume_crud
from app.models.campaign import CampaignStatus
from app.models.matched_pair import TailoringStatus
from app.models.tailored_resume import ArtifactStatus
from app.schemas.messages import TailorMission
from app.workers.tailor_worker import TailorWorker
from tests.conftest import FakeAnalyzer, deliver


def add_positive_match(db, campaign, posting_id="1"):
    job, _ = scraped_job_crud.create_if_absent(
        db,
        url=f"https://www.linkedin.com/jobs/view/{posting_id}/",
        title="Backend Engineer",
        company_name="Acme",
        owner_id=campaign.owner_id,
        campaign_id=campaign.id,
        description={"role_overview": "Payments platform", "qualifications": ["Python"]},
    )
    pair = matched_pair_crud.upsert(
        db,
        owner_id=campaign.owner_id,
        job_id=job.id,
        resume_id=campaign.resume_id,
        campaign_id=campaign.id,
        decision="HIRE",
        is_positive=True,
        confidence=0.90,
        reasoning="Good overlap",
        analysis_report={"decision": {"recommendation": "HIRE"}},
    )
    return job, pair


def tailor_message(campaign, job, pair):
    return deliver(TailorMission(
        job_id=job.id,
        matched_pair_id=pair.id,
        campaign_id=campaign.id,
        resume_id=campaign.resume_id,
    ).to_message(), settings.TAILOR_QUEUE)


def make_worker(fake_queue, session_factory, renderer, analyzer=None, **kwargs):
    return TailorWorker(
        fake_queue,
        analyzer=analyzer or FakeAnalyzer(),
        renderer=renderer,
        session_factory=session_factory,
        poll_interval=0,
        **kwargs,
    )


class TestTailoring:
    """Tests for the tailoring happy path and failures"""

    def test_success_stores_artifact_and_document(self, db_session, campaign, fake_queue, session_factory, renderer):
        job, pair = add_positive_match(db_session, campaign)
        analyzer = FakeAnalyzer()
        worker = make_worker(fake_queue, session_factory, renderer, analyzer=analyzer)
        message = tailor_message(campaign, job, pair)

        worker.handle(message)

        assert message.state == message.ACKED
        assert analyzer.calls[-2:] == ["plan_tailoring", "rewrite_resume"]

        db_session.expire_all()
        pair = matched_pair_crud.get_by_id(db_session, pair.id)
        assert pair.tailoring_status == TailoringStatus.COMPLETED
        assert pair.tailoring_attempts == 1

        artifact = tailored_resume_crud.get_by_matched_pair(db_session, pair.id)
        assert pair.tailored_resume_id == artifact.id
        assert artifact.status == ArtifactStatus.SUCCESS
        assert artifact.campaign_id == campaign.id
        assert artifact.master_plan["match_tier"] == "Strong"
        assert artifact.interview_prep["likely_questions"] == ["Tell us about payments"]
        assert "interview_prep" not in artifact.content
        assert "Senior Backend Engineer" in artifact.tailored_text
        assert artifact.document_path.endswith(".docx")
        assert os.path.exists(artifact.document_path)

    def test_rewrite_failure_marks_failed_and_acks(self, db_session, campaign, fake_queue, session_factory, renderer):
        job, pair = add_positive_match(db_session, campaign)
        worker = make_worker(fake_queue, session_factory, renderer, analyzer=FakeAnalyzer(fail_rewrite=True))
        message = tailor_message(campaign, job, pair)

        worker.handle(message)

        assert message.state == message.ACKED

        db_session.expire_all()
        pair = matched_pair_crud.get_by_id(db_session, pair.id)
        assert pair.tailoring_status == TailoringStatus.FAILED
        assert "MalformedResponseError" in pair.tailoring_error

        artifact = tailored_resume_crud.get_by_matched_pair(db_session, pair.id)
        assert artifact.status == ArtifactStatus.FAILED
        assert "rewrite returned no sections" in artifact.error
        assert artifact.document_path is None

    def test_retry_overwrites_failed_artifact(self, db_session, campaign, fake_queue, session_factory, renderer):
        job, pair = add_positive_match(db_session, campaign)
        make_worker(fake_queue, session_factory, renderer, analyzer=FakeAnalyzer(fail_rewrite=True)).handle(
            tailor_message(campaign, job, pair)
        )

        make_worker(fake_queue, session_factory, renderer).handle(tailor_message(campaign, job, pair))

        db_session.expire_all()
        pair = matched_pair_crud.get_by_id(db_session, pair.id)
        assert pair.tailoring_status == TailoringStatus.COMPLETED
        assert pair.tailoring_attempts == 2
        artifact = tailored_resume_crud.get_by_matched_pair(db_session, pair.id)
        assert artifact.status == ArtifactStatus.SUCCESS
        assert artifact.error is None

    def test_completed_match_is_not_tailored_again(self, db_session, campaign, fake_queue, session_factory, renderer):
        job, pair = add_positive_match(db_session, campaign)
        make_worker(fake_queue, session_factory, renderer).handle(tailor_message(campaign, job, pair))

        analyzer = FakeAnalyzer()
        redelivered = tailor_message(campaign, job, pair)
        make_worker(fake_queue, session_factory, renderer, analyzer=analyzer).handle(redelivered)

        assert redelivered.state == redelivered.ACKED
        assert analyzer.calls == []

    def test_match_held_by_another_worker_is_skipped(
        self, db_session, campaign, fake_queue, session_factory, renderer
    ):
        """Test a redelivered mission does not tailor a match already in progress"""
        job, pair = add_positive_match(db_session, campaign)
        matched_pair_crud.mark_processing(db_session, pair)
        analyzer = FakeAnalyzer()
        redelivered = tailor_message(campaign, job, pair)

        make_worker(fake_queue, session_factory, renderer, analyzer=analyzer).handle(redelivered)

        assert redelivered.state == redelivered.ACKED
        assert analyzer.calls == []
        db_session.expire_all()
        pair = matched_pair_crud.get_by_id(db_session, pair.id)
        assert pair.tailoring_status == TailoringStatus.PROCESSING
        assert pair.tailoring_attempts == 1
        assert tailored_resume_crud.get_by_matched_pair(db_session, pair.id) is None

    def test_unknown_match_is_acked(self, db_session, campaign, fake_queue, session_factory, renderer):
        job, pair = add_positive_match(db_session, campaign)
        message = deliver(TailorMission(
            job_id=job.id, matched_pair_id="missing", campaign_id=campaign.id, resume_id=campaign.resume_id,
        ).to_message())

        make_worker(fake_queue, session_factory, renderer).handle(message)

        assert message.state == message.ACKED


class TestTailorCancellation:
    """Tests for cancelled campaigns"""

    def test_shared_worker_drops_cancelled_mission(self, db_session, campaign, fake_queue, session_factory, renderer):
        job, pair = add_positive_match(db_session, campaign)
        campaign_crud.update_status(db_session, campaign, CampaignStatus.STOPPED)
        analyzer = FakeAnalyzer()
        message = tailor_message(campaign, job, pair)

        make_worker(fake_queue, session_factory, renderer, analyzer=analyzer).handle(message)

        assert message.state == message.ACKED
        assert analyzer.calls == []
        db_session.expire_all()
        assert matched_pair_crud.get_by_id(db_session, pair.id).tailoring_status == TailoringStatus.PENDING

    def test_scoped_worker_requeues_and_stops(self, db_session, campaign, fake_queue, session_factory, renderer):
        job, pair = add_positive_match(db_session, campaign)
        campaign_crud.update_status(db_session, campaign, CampaignStatus.STOPPED)
        worker = make_worker(fake_queue, session_factory, renderer, campaign_id=campaign.id)
        message = tailor_message(campaign, job, pair)

        worker.handle(message)

        assert message.state == message.REQUEUED
        assert worker.should_stop()
