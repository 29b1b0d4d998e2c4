"""
Pytest configuration and fixtures for testing.

This file provides reusable test fixtures for:
- Database setup/teardown (in-memory SQLite shared by API, workers and tests)
- An in-memory queue client that records publishes and acknowledgements
- Scripted Analyzer and Scraper doubles
- FastAPI test client
"""

import os

# The API lifespan opens a real QueueClient; keep it in-process
os.environ.setdefault("BROKER_URL", "memory://")

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.deps import get_queue_client
from app.core.queue import QueueMessage
from app.core.storage import LocalStorage
from app.crud import campaign as campaign_crud
from app.crud import resume as resume_crud
from app.schemas.analysis import (
    EvaluationCategory,
    HiringDecision,
    HiringPriorities,
    InterviewPrep,
    JobDescriptionBlueprint,
    PriorityAssessment,
    PriorityLevel,
    ResumeBlueprint,
    ResumeSection,
    TailoredResumeContent,
    TailoringPlan,
)
from app.services.ai_client import MalformedResponseError
from app.services.document_renderer import DocxResumeRenderer
from app.services.scraper_base import CardExtractionError, JobCard, JobScraper, RawJobPosting, ScraperError
from main import app


# Use in-memory SQLite for testing (fast, isolated)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


RESUME_TEXT = (
    "Jane Doe - Senior Backend Engineer\n"
    "Eight years building Python services, queues and data pipelines.\n"
    "Experience: Acme Corp (2018-2024) led the payments platform team.\n"
    "Skills: Python, PostgreSQL, Kafka, AWS"
)


@pytest.fixture
def db_session():
    """
    Create a fresh database session for each test.
    Tables are dropped after the test completes.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db_session):
    """Session factory handed to workers; sessions share the test connection."""
    return TestingSessionLocal


# ----------------------------------------------------------------------
# Queue double
# ----------------------------------------------------------------------

class FakeRawMessage:
    """Stands in for a kombu Message: records how it was settled."""

    _next_tag = 0

    def __init__(self):
        FakeRawMessage._next_tag += 1
        self.delivery_tag = FakeRawMessage._next_tag
        self.acked = False
        self.rejected = False
        self.requeued = False

    def ack(self):
        self.acked = True

    def reject(self, requeue=False):
        self.rejected = True
        self.requeued = requeue


class FakeQueueClient:
    """
    In-memory QueueClient with the same publish/declare surface.

    publish() stores the JSON body the real client would send; take() turns
    pending bodies of one queue into QueueMessage deliveries.
    """

    def __init__(self):
        self.published: List[tuple] = []
        self.declared: List[str] = []
        self.consumers: List[tuple] = []
        self.is_connected = True

    def declare_queue(self, name: str, durable: bool = True):
        if name not in self.declared:
            self.declared.append(name)

    def publish(self, queue_name: str, payload, persistent: bool = True) -> None:
        body = payload.model_dump(mode="json", by_alias=True) if hasattr(payload, "model_dump") else payload
        self.published.append((queue_name, body))

    def consume(self, queue_name: str, handler, prefetch: int = 1) -> None:
        self.consumers.append((queue_name, handler, prefetch))

    def bodies(self, queue_name: str) -> List[Dict[str, Any]]:
        return [body for name, body in self.published if name == queue_name]

    def take(self, queue_name: str) -> List[QueueMessage]:
        """Remove and deliver every message published to queue_name."""
        taken = [body for name, body in self.published if name == queue_name]
        self.published = [(name, body) for name, body in self.published if name != queue_name]
        return [deliver(body, queue_name) for body in taken]

    def close(self) -> None:
        self.is_connected = False


def deliver(body: Any, queue_name: str = "test") -> QueueMessage:
    return QueueMessage(body, raw=FakeRawMessage(), queue_name=queue_name)


@pytest.fixture
def fake_queue():
    return FakeQueueClient()


# ----------------------------------------------------------------------
# Analyzer double
# ----------------------------------------------------------------------

def make_priorities(location_level: PriorityLevel = PriorityLevel.NON_NEGOTIABLE) -> HiringPriorities:
    priorities = {
        category: PriorityAssessment(level=PriorityLevel.CORE_REQUIREMENT, rationale="stated in posting")
        for category in EvaluationCategory
    }
    priorities[EvaluationCategory.LOCATION_AVAILABILITY] = PriorityAssessment(
        level=location_level, rationale="must be on site"
    )
    return HiringPriorities(priorities=priorities)


class FakeAnalyzer:
    """
    Scripted Analyzer.

    decisions maps a job title to the recommendation returned for it;
    titles listed in malformed_titles raise MalformedResponseError from decide,
    and titles in failing_rewrite_titles raise it from rewrite_resume.
    """

    def __init__(
        self,
        decisions: Optional[Dict[str, str]] = None,
        default_decision: str = "HIRE",
        malformed_titles: Optional[set] = None,
        fail_rewrite: bool = False,
        failing_rewrite_titles: Optional[set] = None,
    ):
        self.decisions = decisions or {}
        self.default_decision = default_decision
        self.malformed_titles = malformed_titles or set()
        self.fail_rewrite = fail_rewrite
        self.failing_rewrite_titles = failing_rewrite_titles or set()
        self.calls: List[str] = []
        self.last_priorities: Optional[HiringPriorities] = None
        self.last_blueprint: Optional[ResumeBlueprint] = None

    def parse_job_description(self, title, company, raw_text):
        self.calls.append("parse_job_description")
        return JobDescriptionBlueprint(
            role_overview=f"{title} at {company}",
            responsibilities=["Build services"],
            qualifications=["Python"],
        )

    def summarize_resume(self, resume_text):
        self.calls.append("summarize_resume")
        return ResumeBlueprint(
            summary="Backend engineer with eight years of Python.",
            contact={"name": "Jane Doe"},
            core_skills=["Python", "PostgreSQL"],
        )

    def infer_hiring_priorities(self, job_description):
        self.calls.append("infer_hiring_priorities")
        return make_priorities()

    def decide(self, job_description, resume_blueprint, priorities):
        self.calls.append("decide")
        self.last_priorities = priorities
        self.last_blueprint = resume_blueprint
        title = job_description.split(" at ", 1)[0]
        if title in self.malformed_titles:
            raise MalformedResponseError(f"no recommendation for {title}")
        return HiringDecision(
            recommendation=self.decisions.get(title, self.default_decision),
            summary=f"Verdict for {title}",
        )

    def plan_tailoring(self, resume_blueprint, job_description, analysis_report):
        self.calls.append("plan_tailoring")
        return TailoringPlan(
            match_tier="Strong",
            confidence_score=0.8,
            analysis_summary="Strong backend overlap.",
            conceptual_keywords_to_integrate=["distributed systems"],
        )

    def rewrite_resume(self, resume_text, job_description, plan, include_interview_prep=True):
        self.calls.append("rewrite_resume")
        title = job_description.split(" at ", 1)[0]
        if self.fail_rewrite or title in self.failing_rewrite_titles:
            raise MalformedResponseError("rewrite returned no sections")
        return TailoredResumeContent(
            professional_title="Senior Backend Engineer",
            summary="Python engineer focused on distributed systems.",
            sections=[ResumeSection(heading="Experience", items=["Led the payments platform team"])],
            skills=["Python", "PostgreSQL"],
            interview_prep=InterviewPrep(likely_questions=["Tell us about payments"]) if include_interview_prep else None,
        )


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer()


# ----------------------------------------------------------------------
# Scraper double
# ----------------------------------------------------------------------

def make_posting(posting_id: str, title: str = "Backend Engineer", company: Optional[str] = "Acme") -> RawJobPosting:
    return RawJobPosting(
        posting_id=posting_id,
        url=f"https://www.linkedin.com/jobs/view/{posting_id}/?trk=search",
        title=title,
        company_name=company,
        location="Berlin, Germany",
        description_text="We build payment systems.\nResponsibilities:\n- Build APIs\nRequirements:\n- Python",
        posted_text="2 days ago",
    )


class FakeScraper(JobScraper):
    """
    Serves fixed pages of postings.

    pages: list of pages, each a list of RawJobPosting
    broken_cards: posting ids whose extraction raises CardExtractionError
    fail_navigation: raise ScraperError from navigate_to_jobs
    on_extract: callback(posting) run before each extraction
    """

    def __init__(self, pages, broken_cards=None, fail_navigation=False, on_extract=None):
        self.pages = pages
        self.broken_cards = set(broken_cards or [])
        self.fail_navigation = fail_navigation
        self.on_extract = on_extract
        self.page_index = 0
        self.extracted: List[str] = []
        self.opened = False
        self.closed = False

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    def navigate_to_jobs(self):
        if self.fail_navigation:
            raise ScraperError("Jobs page unreachable")

    def search(self, role, location):
        self.search_terms = (role, location)

    def apply_filters(self):
        pass

    def visible_cards(self):
        if self.page_index >= len(self.pages):
            return []
        return [
            JobCard(posting_id=posting.posting_id, url=f"https://www.linkedin.com/jobs/view/{posting.posting_id}/",
                    title=posting.title, handle=posting)
            for posting in self.pages[self.page_index]
        ]

    def extract(self, card):
        if self.on_extract is not None:
            self.on_extract(card.handle)
        if card.posting_id in self.broken_cards:
            raise CardExtractionError(f"card {card.posting_id} detached")
        self.extracted.append(card.posting_id)
        return card.handle

    def load_more(self):
        return False

    def next_page(self):
        if self.page_index + 1 >= len(self.pages):
            return False
        self.page_index += 1
        return True


# ----------------------------------------------------------------------
# Domain fixtures
# ----------------------------------------------------------------------

@pytest.fixture
def resume(db_session):
    return resume_crud.create(db_session, owner_id="owner-1", text_content=RESUME_TEXT, is_master=True)


@pytest.fixture
def campaign(db_session, resume):
    return campaign_crud.create(
        db_session,
        owner_id="owner-1",
        resume_id=resume.id,
        target_role="Backend Engineer",
        target_location="Berlin",
    )


@pytest.fixture
def renderer(tmp_path):
    return DocxResumeRenderer(storage=LocalStorage(base_dir=str(tmp_path)))


@pytest.fixture
def client(db_session, fake_queue):
    """
    FastAPI test client with overridden database and queue dependencies.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_queue_client] = lambda: fake_queue

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
