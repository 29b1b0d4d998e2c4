"""
Test suite for the campaign control API.

Tests cover:
- Campaign launch and scrape-mission fan-out
- One running campaign per owner
- Stop, status and listing scoped to the owner
- Resume upload and health endpoints
"""

from app.core.config import settings
from app.core.deps import get_queue_client
from app.crud import matched_pair as matched_pair_crud
from app.crud import scraped_job as scraped_job_crud
from main import app
from tests.conftest import RESUME_TEXT


def launch_payload(resume, **overrides):
    payload = {
        "owner_id": "owner-1",
        "target_role": "Backend Engineer",
        "target_location": "Berlin",
        "resume_id": resume.id,
    }
    payload.update(overrides)
    return payload


class TestCampaignLaunch:
    """Tests for POST /campaigns"""

    def test_launch_fans_out_scrape_missions(self, client, resume, fake_queue):
        """Test a launch publishes one scrape mission per requested scraper"""
        response = client.post(
            "/api/v1/campaigns/",
            json=launch_payload(resume, instance_counts={"scrapers": 3}),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "running"
        assert "3 scrape mission(s)" in data["message"]

        missions = fake_queue.bodies(settings.SCRAPE_QUEUE)
        assert len(missions) == 3
        assert missions[0] == {
            "dedicated": False,
            "campaignId": data["campaign_id"],
            "ownerId": "owner-1",
            "targetRole": "Backend Engineer",
            "targetLocation": "Berlin",
            "resumeId": resume.id,
        }

    def test_launch_with_caller_supplied_id(self, client, resume):
        response = client.post("/api/v1/campaigns/", json=launch_payload(resume, campaign_id="spring-search"))

        assert response.status_code == 201
        assert response.json()["campaign_id"] == "spring-search"

    def test_second_running_campaign_conflicts(self, client, resume, fake_queue):
        """Test an owner cannot run two campaigns at once"""
        first = client.post("/api/v1/campaigns/", json=launch_payload(resume))
        assert first.status_code == 201

        response = client.post("/api/v1/campaigns/", json=launch_payload(resume, target_role="SRE"))

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "conflict"
        assert len(fake_queue.bodies(settings.SCRAPE_QUEUE)) == 1

    def test_launch_after_stop_is_allowed(self, client, resume):
        campaign_id = client.post("/api/v1/campaigns/", json=launch_payload(resume)).json()["campaign_id"]
        client.post(f"/api/v1/campaigns/{campaign_id}/stop", json={"owner_id": "owner-1"})

        response = client.post("/api/v1/campaigns/", json=launch_payload(resume))

        assert response.status_code == 201

    def test_launch_validation(self, client, resume):
        """Test missing role and out-of-range scraper counts are rejected"""
        assert client.post("/api/v1/campaigns/", json={"owner_id": "owner-1", "resume_id": resume.id}).status_code == 422
        response = client.post("/api/v1/campaigns/", json=launch_payload(resume, instance_counts={"scrapers": 0}))
        assert response.status_code == 422

    def test_launch_without_queue_returns_503(self, client, resume):
        app.dependency_overrides.pop(get_queue_client)
        app.state.queue = None

        response = client.post("/api/v1/campaigns/", json=launch_payload(resume))

        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "queue_unavailable"


class TestCampaignStop:
    """Tests for POST /campaigns/{id}/stop"""

    def test_stop_running_campaign(self, client, resume):
        campaign_id = client.post("/api/v1/campaigns/", json=launch_payload(resume)).json()["campaign_id"]

        response = client.post(f"/api/v1/campaigns/{campaign_id}/stop", json={"owner_id": "owner-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "stopped"
        assert data["stopped_at"] is not None

    def test_stop_is_idempotent(self, client, resume):
        campaign_id = client.post("/api/v1/campaigns/", json=launch_payload(resume)).json()["campaign_id"]
        client.post(f"/api/v1/campaigns/{campaign_id}/stop", json={"owner_id": "owner-1"})

        response = client.post(f"/api/v1/campaigns/{campaign_id}/stop", json={"owner_id": "owner-1"})

        assert response.status_code == 200
        assert response.json()["status"] == "stopped"

    def test_stop_other_owners_campaign_is_not_found(self, client, resume):
        campaign_id = client.post("/api/v1/campaigns/", json=launch_payload(resume)).json()["campaign_id"]

        response = client.post(f"/api/v1/campaigns/{campaign_id}/stop", json={"owner_id": "owner-2"})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"


class TestCampaignStatus:
    """Tests for GET /campaigns/{id}/status and listing"""

    def test_status_counts(self, client, db_session, campaign):
        job, _ = scraped_job_crud.create_if_absent(
            db_session, url="https://www.linkedin.com/jobs/view/1/", title="Backend Engineer",
            company_name="Acme", owner_id="owner-1", campaign_id=campaign.id,
        )
        scraped_job_crud.create_if_absent(
            db_session, url="https://www.linkedin.com/jobs/view/2/", title="Frontend Engineer",
            company_name="Acme", owner_id="owner-1", campaign_id=campaign.id,
        )
        matched_pair_crud.upsert(
            db_session, owner_id="owner-1", job_id=job.id, resume_id=campaign.resume_id,
            campaign_id=campaign.id, decision="HIRE", is_positive=True, confidence=0.9,
        )

        response = client.get(f"/api/v1/campaigns/{campaign.id}/status", params={"owner_id": "owner-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["target_role"] == "Backend Engineer"
        assert data["stats"] == {
            "jobs_scraped": 2,
            "jobs_matched": 1,
            "jobs_pending": 1,
            "jobs_tailored": 0,
            "jobs_rejected": 0,
            "tailoring_failed": 0,
        }

    def test_status_requires_owner(self, client, campaign):
        assert client.get(f"/api/v1/campaigns/{campaign.id}/status").status_code == 422
        response = client.get(f"/api/v1/campaigns/{campaign.id}/status", params={"owner_id": "owner-2"})
        assert response.status_code == 404

    def test_list_campaigns_for_owner(self, client, campaign):
        response = client.get("/api/v1/campaigns/", params={"owner_id": "owner-1"})

        assert response.status_code == 200
        data = response.json()
        assert [item["id"] for item in data] == [campaign.id]
        assert client.get("/api/v1/campaigns/", params={"owner_id": "owner-2"}).json() == []


class TestResumes:
    """Tests for resume upload"""

    def test_create_and_fetch_resume(self, client):
        response = client.post("/api/v1/resumes/", json={
            "owner_id": "owner-1",
            "text_content": RESUME_TEXT,
            "original_name": "jane.txt",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["is_master"] is True
        assert data["blueprint"] is None

        fetched = client.get(f"/api/v1/resumes/{data['id']}", params={"owner_id": "owner-1"})
        assert fetched.status_code == 200
        assert fetched.json()["original_name"] == "jane.txt"

    def test_resume_hidden_from_other_owners(self, client, resume):
        response = client.get(f"/api/v1/resumes/{resume.id}", params={"owner_id": "owner-2"})

        assert response.status_code == 404

    def test_short_resume_rejected(self, client):
        response = client.post("/api/v1/resumes/", json={"owner_id": "owner-1", "text_content": "too short"})

        assert response.status_code == 422


class TestHealth:
    """Tests for health endpoints"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health(self, client):
        response = client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["queue"]["status"] == "healthy"
        assert data["status"] == "healthy"
