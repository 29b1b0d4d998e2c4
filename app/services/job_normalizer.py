"""
Turn a RawJobPosting read off the page into validated ScrapedJob fields.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from app.schemas.analysis import JobDescriptionBlueprint
from app.services.ai_client import AIClientError
from app.services.scraper_base import DataIntegrityError, RawJobPosting

logger = logging.getLogger(__name__)

LINKEDIN_JOB_URL = "https://www.linkedin.com/jobs/view/{posting_id}/"

_RELATIVE_TIME_RE = re.compile(r"(\d+)\s*(minute|hour|day|week|month|year)s?\s*ago", re.IGNORECASE)
_POSTING_ID_RE = re.compile(r"(?:currentJobId=|/jobs/view/(?:[^/?#]*-)?)(\d+)")

# Approximate lengths for units timedelta does not support
_UNIT_DELTAS = {
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}

_SECTION_HEADINGS = {
    "responsibilities": ("responsibilities", "key responsibilities", "what you'll do", "what you will do", "duties"),
    "qualifications": ("qualifications", "requirements", "what you'll bring", "what you bring",
                       "who you are", "skills", "must have", "nice to have"),
    "benefits": ("benefits", "perks", "what we offer", "compensation"),
}


def parse_posted_time(text: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Convert "3 hours ago" / "Reposted 2 days ago" into an absolute UTC time.

    "just now" and "moments ago" map to now. Anything unparseable returns None.
    """
    if not text:
        return None
    now = now or datetime.now(timezone.utc)

    lowered = text.strip().lower()
    if "just now" in lowered or "moments ago" in lowered:
        return now

    match = _RELATIVE_TIME_RE.search(lowered)
    if not match:
        return None
    amount = int(match.group(1))
    return now - _UNIT_DELTAS[match.group(2)] * amount


def extract_posting_id(url: str) -> Optional[str]:
    match = _POSTING_ID_RE.search(url or "")
    return match.group(1) if match else None


def canonical_job_url(posting_id: str) -> str:
    """Stable natural key for a LinkedIn posting, independent of tracking parameters."""
    return LINKEDIN_JOB_URL.format(posting_id=posting_id)


def _clean_line(line: str) -> str:
    return line.strip().lstrip("-•*·▪").strip()


def heuristic_description(text: str) -> JobDescriptionBlueprint:
    """
    Split a posting into sections by looking for common headings.

    Used when the Analyzer cannot parse the description. Text before the first
    recognised heading becomes the role overview.
    """
    overview: List[str] = []
    sections: Dict[str, List[str]] = {key: [] for key in _SECTION_HEADINGS}
    current: Optional[str] = None

    for raw_line in (text or "").splitlines():
        line = _clean_line(raw_line)
        if not line:
            continue
        heading = line.lower().rstrip(":")
        matched = next(
            (key for key, names in _SECTION_HEADINGS.items()
             if len(heading) <= 40 and any(heading.startswith(name) for name in names)),
            None,
        )
        if matched:
            current = matched
            continue
        if current is None:
            overview.append(line)
        else:
            sections[current].append(line)

    return JobDescriptionBlueprint(
        role_overview=" ".join(overview),
        responsibilities=sections["responsibilities"],
        qualifications=sections["qualifications"],
        benefits=sections["benefits"],
    )


def describe(raw: RawJobPosting, analyzer=None) -> JobDescriptionBlueprint:
    """Structured description via the Analyzer, falling back to the heading heuristic."""
    if analyzer is not None and raw.description_text.strip():
        try:
            return analyzer.parse_job_description(raw.title or "", raw.company_name or "", raw.description_text)
        except AIClientError as e:
            logger.warning(f"[Scraper] Description parse failed for {raw.url}, using heuristic split: {e}")
    return heuristic_description(raw.description_text)


def normalize_posting(raw: RawJobPosting, analyzer=None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Validate a raw posting and build the ScrapedJob column values.

    Raises:
        DataIntegrityError: title or company name missing
    """
    title = (raw.title or "").strip()
    company_name = (raw.company_name or "").strip()
    if not title or not company_name:
        raise DataIntegrityError(
            f"Posting {raw.posting_id} missing required fields "
            f"(title={bool(title)}, company={bool(company_name)})"
        )

    posting_id = raw.posting_id or extract_posting_id(raw.url)
    url = canonical_job_url(posting_id) if posting_id else raw.url

    return {
        "url": url,
        "posting_id": posting_id,
        "title": title,
        "company_name": company_name,
        "company_url": raw.company_url,
        "location": (raw.location or "").strip() or None,
        "description": describe(raw, analyzer).model_dump(),
        "posted_at": parse_posted_time(raw.posted_text, now=now),
    }
