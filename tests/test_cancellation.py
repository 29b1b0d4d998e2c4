"""
Tests for the poll-based campaign cancellation token.
"""

from app.core.cancellation import CampaignCancellationToken
from app.crud import campaign as campaign_crud
from app.models.campaign import CampaignStatus


class CountingSessionFactory:
    def __init__(self, factory):
        self.factory = factory
        self.opened = 0

    def __call__(self):
        self.opened += 1
        return self.factory()


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestCancellationToken:
    """Tests for CampaignCancellationToken"""

    def test_running_campaign_not_cancelled(self, db_session, campaign, session_factory):
        token = CampaignCancellationToken(campaign.id, session_factory=session_factory, poll_interval=0)
        assert not token.is_cancelled()
        assert token.reason is None

    def test_stopped_campaign_cancelled(self, db_session, campaign, session_factory):
        token = CampaignCancellationToken(campaign.id, session_factory=session_factory, poll_interval=0)
        campaign_crud.update_status(db_session, campaign, CampaignStatus.STOPPED)

        assert token.is_cancelled()
        assert token.reason == "stopped"

    def test_failed_campaign_cancelled(self, db_session, campaign, session_factory):
        campaign_crud.update_status(db_session, campaign, CampaignStatus.FAILED, error_message="boom")
        token = CampaignCancellationToken(campaign.id, session_factory=session_factory, poll_interval=0)

        assert token.is_cancelled()
        assert token.reason == "failed"

    def test_missing_campaign_cancelled(self, db_session, session_factory):
        token = CampaignCancellationToken("no-such-campaign", session_factory=session_factory, poll_interval=0)

        assert token.is_cancelled()
        assert token.reason == "missing"

    def test_completed_campaign_not_cancelled(self, db_session, campaign, session_factory):
        campaign_crud.update_status(db_session, campaign, CampaignStatus.COMPLETED)
        token = CampaignCancellationToken(campaign.id, session_factory=session_factory, poll_interval=0)

        assert not token.is_cancelled()

    def test_poll_interval_limits_reads(self, db_session, campaign, session_factory):
        clock = FakeClock()
        sessions = CountingSessionFactory(session_factory)
        token = CampaignCancellationToken(campaign.id, session_factory=sessions, poll_interval=5, clock=clock)

        token.is_cancelled()
        campaign_crud.update_status(db_session, campaign, CampaignStatus.STOPPED)
        clock.now = 4.9
        assert not token.is_cancelled()
        assert sessions.opened == 1

        clock.now = 5.0
        assert token.is_cancelled()
        assert sessions.opened == 2

    def test_cancellation_is_sticky(self, db_session, campaign, session_factory):
        sessions = CountingSessionFactory(session_factory)
        token = CampaignCancellationToken(campaign.id, session_factory=sessions, poll_interval=0)
        campaign_crud.update_status(db_session, campaign, CampaignStatus.STOPPED)

        assert token.is_cancelled()
        assert token.is_cancelled()
        assert sessions.opened == 1
