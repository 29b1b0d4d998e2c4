"""
Analyzer: every LLM-backed judgement the pipeline makes.

Each public method is one call site with one typed result:

- parse_job_description -> JobDescriptionBlueprint
- summarize_resume      -> ResumeBlueprint
- infer_hiring_priorities -> HiringPriorities
- decide                -> HiringDecision
- plan_tailoring        -> TailoringPlan
- rewrite_resume        -> TailoredResumeContent

All of them go through _structured_call(), which validates the JSON against
the pydantic model and retries a malformed response a small fixed number of
times. Transient and truncation retries happen one layer down in AIClient.
"""

import json
import logging
from typing import Any, Dict, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError
from app.core.config import settings
from app.core.retry import RetryPolicy, retry_call, retry_on
from app.schemas.analysis import (
    EvaluationCategory,
    HiringDecision,
    HiringPriorities,
    JobDescriptionBlueprint,
    PriorityLevel,
    Recommendation,
    ResumeBlueprint,
    TailoredResumeContent,
    TailoringPlan,
)
from app.services.ai_client import AIClient, MalformedResponseError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_PRIORITY_LEVELS = ", ".join(f'"{level.value}"' for level in PriorityLevel)
_CATEGORIES = ", ".join(f'"{category.value}"' for category in EvaluationCategory)
_RECOMMENDATIONS = ", ".join(f'"{label.value}"' for label in Recommendation)


def _dump(value: Any) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, indent=2, ensure_ascii=False)


class Analyzer:
    """
    Typed facade over AIClient.

    Args:
        client: AIClient instance, built from settings when omitted
        malformed_attempts: Total attempts per call when the response does not
            validate (2 means one retry)
    """

    def __init__(self, client: Optional[AIClient] = None, malformed_attempts: Optional[int] = None):
        self.client = client or AIClient()
        self.malformed_policy = RetryPolicy(
            max_attempts=malformed_attempts or settings.AI_MALFORMED_MAX_ATTEMPTS,
            base_delay=0.0,
        )

    def _structured_call(
        self,
        schema: Type[M],
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        label: str = "analyzer call",
    ) -> M:
        def attempt(n: int) -> M:
            data = self.client.complete_json(system_prompt, user_prompt, model=model)
            try:
                return schema.model_validate(data)
            except ValidationError as e:
                raise MalformedResponseError(f"{label}: response failed validation: {e}") from e

        return retry_call(
            attempt,
            self.malformed_policy,
            retry_if=retry_on(MalformedResponseError),
            sleep=lambda _: None,
            description=label,
        )

    def parse_job_description(self, title: str, company: str, raw_text: str) -> JobDescriptionBlueprint:
        """Split a raw posting into overview, responsibilities, qualifications and benefits."""
        system_prompt = (
            "You extract structure from job postings. Return only JSON with keys "
            '"role_overview" (string), "responsibilities", "qualifications" and '
            '"benefits" (arrays of short strings). Do not invent content.'
        )
        user_prompt = f"JOB TITLE: {title}\nCOMPANY: {company}\n\nPOSTING:\n{raw_text}"
        return self._structured_call(
            JobDescriptionBlueprint, system_prompt, user_prompt, label="Job description parse"
        )

    def summarize_resume(self, resume_text: str) -> ResumeBlueprint:
        """Produce the narrative blueprint of a candidate resume."""
        system_prompt = (
            "You are an expert technical recruiter. Summarize the resume into a JSON "
            'blueprint with keys "summary" (3-4 sentence narrative), "contact" (object of '
            'strings), "core_skills", "secondary_skills" (arrays), "years_of_experience" '
            '(number), "experience" and "education" (arrays of objects). '
            "Use only facts present in the resume."
        )
        return self._structured_call(
            ResumeBlueprint, system_prompt, f"RESUME:\n{resume_text}", label="Resume blueprint"
        )

    def infer_hiring_priorities(self, job_description: str) -> HiringPriorities:
        """Classify how strongly the posting requires each evaluation category."""
        system_prompt = (
            "You are a hiring manager reading your own job posting. For every category "
            f"in [{_CATEGORIES}] classify the requirement strength as one of "
            f"[{_PRIORITY_LEVELS}]. Return only JSON of the form "
            '{"priorities": {"<category>": {"level": "<level>", "rationale": "<one sentence>"}}} '
            "covering every category."
        )
        return self._structured_call(
            HiringPriorities, system_prompt, f"JOB DESCRIPTION:\n{job_description}",
            label="Hiring priorities"
        )

    def decide(
        self,
        job_description: str,
        resume_blueprint: ResumeBlueprint,
        priorities: HiringPriorities,
    ) -> HiringDecision:
        """
        Final hire/no-hire verdict for one job.

        A response without a recommendation is malformed and retried; after
        the malformed budget the MalformedResponseError propagates to the
        matcher's batch handling.
        """
        system_prompt = (
            "You are a rigorous, fair hiring committee. Weigh the candidate against each "
            "category using the stated requirement strength. Only Non-Negotiable gaps may "
            "be deal-breakers. Return only JSON with keys "
            '"category_reasoning" (object: category -> 1-2 sentences), "deal_breakers" '
            '(array), "possible_exceptions" (array), "summary" (string) and '
            f'"recommendation" (one of [{_RECOMMENDATIONS}]).'
        )
        user_prompt = (
            f"JOB DESCRIPTION:\n{job_description}\n\n"
            f"CANDIDATE BLUEPRINT:\n{_dump(resume_blueprint)}\n\n"
            f"HIRING PRIORITIES:\n{_dump(priorities)}"
        )
        return self._structured_call(
            HiringDecision, system_prompt, user_prompt,
            model=settings.OPENAI_REASONING_MODEL, label="Hiring decision"
        )

    def plan_tailoring(
        self,
        resume_blueprint: ResumeBlueprint,
        job_description: str,
        analysis_report: Dict[str, Any],
    ) -> TailoringPlan:
        """First tailoring pass: gap analysis and strategy for the rewrite."""
        system_prompt = (
            "You are a career strategist. From the candidate blueprint, job description and "
            "match analysis, plan how to tailor the resume without fabricating experience. "
            'Return only JSON with keys "match_tier", "confidence_score" (0.0-1.0), '
            '"analysis_summary" (one sentence), "core_narrative_to_project", '
            '"strategic_goals" ({"amplify": [{"strength", "action"}], '
            '"bridge_gaps": [{"gap", "strategy"}]}) and '
            '"conceptual_keywords_to_integrate" (5-7 phrases).'
        )
        user_prompt = (
            f"CANDIDATE BLUEPRINT:\n{_dump(resume_blueprint)}\n\n"
            f"JOB DESCRIPTION:\n{job_description}\n\n"
            f"MATCH ANALYSIS:\n{_dump(analysis_report)}"
        )
        return self._structured_call(
            TailoringPlan, system_prompt, user_prompt,
            model=settings.OPENAI_REASONING_MODEL, label="Tailoring plan"
        )

    def rewrite_resume(
        self,
        resume_text: str,
        job_description: str,
        plan: TailoringPlan,
        include_interview_prep: bool = True,
    ) -> TailoredResumeContent:
        """Second tailoring pass: rewrite the resume sections following the plan."""
        prep = (
            ' Also include "interview_prep" with "likely_questions" and "talking_points".'
            if include_interview_prep else ""
        )
        system_prompt = (
            "You are a resume writer executing a tailoring plan. Rewrite the resume so its "
            "headline, summary and bullets foreground the evidence the plan calls for, "
            "folding the plan's keywords in naturally. Never invent employers, titles, "
            'dates or degrees. Return only JSON with keys "professional_title", "summary", '
            '"sections" (array of {"heading", "items"}) and "skills" (array).' + prep
        )
        user_prompt = (
            f"ORIGINAL RESUME:\n{resume_text}\n\n"
            f"JOB DESCRIPTION:\n{job_description}\n\n"
            f"TAILORING PLAN:\n{_dump(plan)}"
        )
        return self._structured_call(
            TailoredResumeContent, system_prompt, user_prompt, label="Resume rewrite"
        )
