"""
Typed results for every Analyzer call site.

The LLM returns loosely shaped JSON; each call site validates it against one
of these models before anything downstream touches it. A validation failure
becomes a MalformedResponseError in the Analyzer, never an AttributeError deep
in a worker.
"""

import enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class JobDescriptionBlueprint(BaseModel):
    """Structured job description extracted from the posting text."""
    model_config = ConfigDict(extra="ignore")

    role_overview: str = ""
    responsibilities: List[str] = Field(default_factory=list)
    qualifications: List[str] = Field(default_factory=list)
    benefits: List[str] = Field(default_factory=list)

    def as_text(self) -> str:
        parts = []
        if self.role_overview:
            parts.append(self.role_overview)
        for heading, items in (
            ("Responsibilities", self.responsibilities),
            ("Qualifications", self.qualifications),
            ("Benefits", self.benefits),
        ):
            if items:
                parts.append(f"{heading}:\n" + "\n".join(f"- {item}" for item in items))
        return "\n\n".join(parts)


class ResumeBlueprint(BaseModel):
    """Narrative summary of the candidate's resume, cached on the Resume row."""
    model_config = ConfigDict(extra="allow")

    summary: str = Field(..., min_length=1)
    contact: Dict[str, str] = Field(default_factory=dict)
    core_skills: List[str] = Field(default_factory=list)
    secondary_skills: List[str] = Field(default_factory=list)
    years_of_experience: Optional[float] = None
    experience: List[Dict] = Field(default_factory=list)
    education: List[Dict] = Field(default_factory=list)


class PriorityLevel(str, enum.Enum):
    """Requirement strength, strongest first."""
    NON_NEGOTIABLE = "Non-Negotiable"
    CORE_REQUIREMENT = "Core Requirement"
    STRONGLY_PREFERRED = "Strongly Preferred"
    LOW_PRIORITY = "Low Priority"

    @classmethod
    def _missing_(cls, value):
        # Accept "non-negotiable", "CORE_REQUIREMENT", "strongly preferred"...
        if isinstance(value, str):
            wanted = "".join(ch for ch in value.lower() if ch.isalnum())
            for member in cls:
                if "".join(ch for ch in member.value.lower() if ch.isalnum()) == wanted:
                    return member
        return None


class EvaluationCategory(str, enum.Enum):
    EXPERIENCE = "experience"
    DOMAIN_ALIGNMENT = "domain_alignment"
    TECH_MATCH = "tech_match"
    SENIORITY = "seniority"
    LOCATION_AVAILABILITY = "location_availability"
    COMPENSATION = "compensation"
    CULTURE = "culture"
    EDUCATION = "education"


class PriorityAssessment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    level: PriorityLevel
    rationale: str = ""

    @field_validator("level", mode="before")
    @classmethod
    def coerce_level(cls, v):
        if isinstance(v, str):
            return PriorityLevel(v)
        return v


class HiringPriorities(BaseModel):
    """Per-category requirement strength inferred from the job description."""
    model_config = ConfigDict(extra="ignore")

    priorities: Dict[EvaluationCategory, PriorityAssessment]

    @field_validator("priorities")
    @classmethod
    def require_every_category(cls, v: Dict[EvaluationCategory, PriorityAssessment]):
        missing = [c.value for c in EvaluationCategory if c not in v]
        if missing:
            raise ValueError(f"missing categories: {', '.join(missing)}")
        return v

    def level_of(self, category: EvaluationCategory) -> PriorityLevel:
        return self.priorities[category].level


class Recommendation(str, enum.Enum):
    STRONG_HIRE = "STRONG HIRE"
    HIRE = "HIRE"
    INTERVIEW = "INTERVIEW"
    PROCEED_TO_INTERVIEW = "PROCEED TO INTERVIEW"
    REJECT = "REJECT"


class HiringDecision(BaseModel):
    """
    Final verdict for one job.

    `recommendation` is kept as the normalized label string so that a label
    outside the known set still round-trips (it maps to confidence 0.0 and
    is treated as non-positive).
    """
    model_config = ConfigDict(extra="ignore")

    recommendation: str = Field(..., min_length=1)
    summary: str = ""
    category_reasoning: Dict[str, str] = Field(default_factory=dict)
    deal_breakers: List[str] = Field(default_factory=list)
    possible_exceptions: List[str] = Field(default_factory=list)

    @field_validator("recommendation")
    @classmethod
    def normalize_label(cls, v: str) -> str:
        return " ".join(v.replace("_", " ").split()).upper()


class StrategicGoal(BaseModel):
    model_config = ConfigDict(extra="ignore")

    strength: Optional[str] = None
    action: Optional[str] = None
    gap: Optional[str] = None
    strategy: Optional[str] = None


class StrategicGoals(BaseModel):
    amplify: List[StrategicGoal] = Field(default_factory=list)
    bridge_gaps: List[StrategicGoal] = Field(default_factory=list)


class TailoringPlan(BaseModel):
    """First tailoring pass: gap analysis and the plan for the rewrite."""
    model_config = ConfigDict(extra="ignore")

    match_tier: str = ""
    confidence_score: float = Field(0.0, ge=0.0, le=1.0)
    analysis_summary: str = Field(..., min_length=1)
    core_narrative_to_project: str = ""
    strategic_goals: StrategicGoals = Field(default_factory=StrategicGoals)
    conceptual_keywords_to_integrate: List[str] = Field(default_factory=list)


class ResumeSection(BaseModel):
    heading: str = Field(..., min_length=1)
    items: List[str] = Field(default_factory=list)


class InterviewPrep(BaseModel):
    model_config = ConfigDict(extra="ignore")

    likely_questions: List[str] = Field(default_factory=list)
    talking_points: List[str] = Field(default_factory=list)


class TailoredResumeContent(BaseModel):
    """Second tailoring pass: the rewritten resume."""
    model_config = ConfigDict(extra="ignore")

    professional_title: str = Field(..., min_length=1)
    summary: str = Field(..., min_length=1)
    sections: List[ResumeSection] = Field(..., min_length=1)
    skills: List[str] = Field(default_factory=list)
    interview_prep: Optional[InterviewPrep] = None

    def as_text(self) -> str:
        lines = [self.professional_title, "", self.summary]
        for section in self.sections:
            lines.extend(["", section.heading.upper()])
            lines.extend(f"- {item}" for item in section.items)
        if self.skills:
            lines.extend(["", "SKILLS", ", ".join(self.skills)])
        return "\n".join(lines)
