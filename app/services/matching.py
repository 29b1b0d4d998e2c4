"""
Deterministic parts of the matching stage.

The Analyzer makes the judgement calls; this module owns everything that must
come out the same every time: the label -> confidence table, which labels count
as positive, the location-flexibility override and the resume blueprint
memoization.
"""

import logging
from sqlalchemy.orm import Session
from app.crud import resume as crud_resume
from app.models.resume import Resume
from app.models.scraped_job import ScrapedJob
from app.schemas.analysis import (
    EvaluationCategory,
    HiringPriorities,
    JobDescriptionBlueprint,
    PriorityAssessment,
    PriorityLevel,
    Recommendation,
    ResumeBlueprint,
)

logger = logging.getLogger(__name__)

DECISION_CONFIDENCE = {
    Recommendation.STRONG_HIRE.value: 0.95,
    Recommendation.HIRE.value: 0.90,
    Recommendation.INTERVIEW.value: 0.80,
    Recommendation.PROCEED_TO_INTERVIEW.value: 0.75,
    Recommendation.REJECT.value: 0.10,
}

POSITIVE_DECISIONS = frozenset({
    Recommendation.STRONG_HIRE.value,
    Recommendation.HIRE.value,
    Recommendation.INTERVIEW.value,
    Recommendation.PROCEED_TO_INTERVIEW.value,
})

FLEXIBILITY_STATEMENT = (
    "Open to relocation and to remote, hybrid or on-site work in any time zone."
)


def _normalize_label(label: str) -> str:
    return " ".join((label or "").replace("_", " ").split()).upper()


def confidence_for_decision(label: str) -> float:
    """Map a recommendation label to its fixed confidence; unknown labels map to 0.0."""
    return DECISION_CONFIDENCE.get(_normalize_label(label), 0.0)


def is_positive_decision(label: str) -> bool:
    """Only the four known positive labels lead to tailoring."""
    return _normalize_label(label) in POSITIVE_DECISIONS


def apply_location_flexibility(priorities: HiringPriorities) -> HiringPriorities:
    """
    Downgrade a Non-Negotiable location/availability requirement to Strongly
    Preferred. The candidate is modelled as globally flexible, so location is
    never a deal-breaker. Returns a new object; the input is not modified.
    """
    overridden = priorities.model_copy(deep=True)
    current = overridden.priorities[EvaluationCategory.LOCATION_AVAILABILITY]
    if current.level == PriorityLevel.NON_NEGOTIABLE:
        overridden.priorities[EvaluationCategory.LOCATION_AVAILABILITY] = PriorityAssessment(
            level=PriorityLevel.STRONGLY_PREFERRED,
            rationale=current.rationale,
        )
    return overridden


def inject_flexibility_statement(blueprint: ResumeBlueprint) -> ResumeBlueprint:
    """Add the flexibility statement to the blueprint's summary and contact block."""
    updated = blueprint.model_copy(deep=True)
    if FLEXIBILITY_STATEMENT not in updated.summary:
        updated.summary = f"{updated.summary.rstrip()} {FLEXIBILITY_STATEMENT}"
    updated.contact["availability"] = FLEXIBILITY_STATEMENT
    return updated


def ensure_resume_blueprint(db: Session, resume: Resume, analyzer) -> ResumeBlueprint:
    """
    Return the resume's cached blueprint, generating and persisting it once.
    """
    if resume.blueprint:
        return ResumeBlueprint.model_validate(resume.blueprint)

    logger.info(f"[Matcher] Generating blueprint for resume {resume.id}")
    blueprint = analyzer.summarize_resume(resume.text_content)
    crud_resume.save_blueprint(db, resume, blueprint.model_dump(mode="json"))
    return blueprint


def job_prompt_text(job: ScrapedJob) -> str:
    """The job as the Analyzer sees it: header line plus the structured description."""
    header = f"{job.title} at {job.company_name}"
    if job.location:
        header += f" ({job.location})"
    description = JobDescriptionBlueprint.model_validate(job.description or {}).as_text()
    return f"{header}\n\n{description}" if description else header
