"""
Tests for the Analyzer's typed call sites.

The AI client is replaced by a scripted double; these tests cover validation
of the returned JSON and the malformed-response retry budget.
"""

import pytest

from app.core.config import settings
from app.schemas.analysis import EvaluationCategory, PriorityLevel, ResumeBlueprint
from app.services.ai_client import MalformedResponseError
from app.services.analyzer import Analyzer
from tests.conftest import make_priorities


class ScriptedAIClient:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def complete_json(self, system_prompt, user_prompt, model=None, max_tokens=None):
        self.calls.append({"system": system_prompt, "user": user_prompt, "model": model})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


BLUEPRINT = ResumeBlueprint(summary="Backend engineer.", contact={"name": "Jane"})


class TestDecide:
    """Tests for Analyzer.decide"""

    def test_valid_decision(self):
        client = ScriptedAIClient([{"recommendation": "strong_hire", "summary": "Great fit"}])
        analyzer = Analyzer(client=client, malformed_attempts=2)

        decision = analyzer.decide("Backend Engineer at Acme", BLUEPRINT, make_priorities())

        assert decision.recommendation == "STRONG HIRE"
        assert decision.summary == "Great fit"
        assert client.calls[0]["model"] == settings.OPENAI_REASONING_MODEL

    def test_missing_recommendation_retried_once(self):
        client = ScriptedAIClient([
            {"summary": "forgot the label"},
            {"recommendation": "REJECT", "summary": "Missing core skills"},
        ])
        analyzer = Analyzer(client=client, malformed_attempts=2)

        decision = analyzer.decide("Backend Engineer at Acme", BLUEPRINT, make_priorities())

        assert decision.recommendation == "REJECT"
        assert len(client.calls) == 2

    def test_malformed_twice_raises(self):
        client = ScriptedAIClient([{"summary": "no label"}, {"summary": "still no label"}])
        analyzer = Analyzer(client=client, malformed_attempts=2)

        with pytest.raises(MalformedResponseError):
            analyzer.decide("Backend Engineer at Acme", BLUEPRINT, make_priorities())
        assert len(client.calls) == 2

    def test_unparseable_content_counts_as_malformed(self):
        client = ScriptedAIClient([
            MalformedResponseError("not json"),
            {"recommendation": "HIRE"},
        ])
        analyzer = Analyzer(client=client, malformed_attempts=2)

        assert analyzer.decide("job", BLUEPRINT, make_priorities()).recommendation == "HIRE"


class TestHiringPriorities:
    """Tests for Analyzer.infer_hiring_priorities"""

    def test_levels_are_normalized(self):
        payload = {
            "priorities": {
                category.value: {"level": "core requirement", "rationale": "listed"}
                for category in EvaluationCategory
            }
        }
        payload["priorities"]["location_availability"]["level"] = "NON_NEGOTIABLE"
        analyzer = Analyzer(client=ScriptedAIClient([payload]))

        priorities = analyzer.infer_hiring_priorities("job text")

        assert priorities.level_of(EvaluationCategory.LOCATION_AVAILABILITY) == PriorityLevel.NON_NEGOTIABLE
        assert priorities.level_of(EvaluationCategory.EXPERIENCE) == PriorityLevel.CORE_REQUIREMENT

    def test_missing_category_is_malformed(self):
        partial = {"priorities": {"experience": {"level": "Core Requirement"}}}
        analyzer = Analyzer(client=ScriptedAIClient([partial, partial]), malformed_attempts=2)

        with pytest.raises(MalformedResponseError):
            analyzer.infer_hiring_priorities("job text")


class TestTailoringCalls:
    """Tests for the two tailoring passes"""

    def test_plan_and_rewrite(self):
        client = ScriptedAIClient([
            {
                "match_tier": "Strong",
                "confidence_score": 0.85,
                "analysis_summary": "Good overlap",
                "strategic_goals": {"amplify": [{"strength": "Python", "action": "lead with it"}]},
                "conceptual_keywords_to_integrate": ["event-driven"],
            },
            {
                "professional_title": "Senior Backend Engineer",
                "summary": "Builds reliable services.",
                "sections": [{"heading": "Experience", "items": ["Led payments"]}],
                "skills": ["Python"],
                "interview_prep": {"likely_questions": ["Why us?"]},
            },
        ])
        analyzer = Analyzer(client=client)

        plan = analyzer.plan_tailoring(BLUEPRINT, "job text", {"decision": {"recommendation": "HIRE"}})
        content = analyzer.rewrite_resume("resume text", "job text", plan)

        assert plan.strategic_goals.amplify[0].strength == "Python"
        assert content.interview_prep.likely_questions == ["Why us?"]
        assert "EXPERIENCE" in content.as_text()
        assert "interview_prep" in client.calls[1]["system"]

    def test_rewrite_without_sections_is_malformed(self):
        bad = {"professional_title": "Engineer", "summary": "x", "sections": []}
        analyzer = Analyzer(client=ScriptedAIClient([bad, bad]), malformed_attempts=2)

        with pytest.raises(MalformedResponseError):
            analyzer.rewrite_resume("resume", "job", None, include_interview_prep=False)
