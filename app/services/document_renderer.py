"""
DocumentRenderer: turns tailored resume content into a stored document.

The default renderer builds a .docx with python-docx and writes it through the
storage backend (local directory or S3).
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from io import BytesIO
from typing import Optional
from docx import Document
from docx.shared import Pt
from app.core.storage import StorageBackend, get_storage
from app.schemas.analysis import TailoredResumeContent

logger = logging.getLogger(__name__)


class RenderError(Exception):
    """Raised when a document cannot be rendered or stored"""
    pass


@dataclass
class RenderedDocument:
    path: str
    content_type: str
    size_bytes: int


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")[:60] or "resume"


class DocumentRenderer(ABC):

    @abstractmethod
    def render(
        self,
        content: TailoredResumeContent,
        owner_id: str,
        job_id: str,
        candidate_name: Optional[str] = None,
    ) -> RenderedDocument:
        """
        Render and store the tailored resume.

        Raises:
            RenderError: If rendering or upload fails
        """
        pass


class DocxResumeRenderer(DocumentRenderer):
    """Single-column .docx resume: name, headline, summary, sections, skills."""

    CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

    def __init__(self, storage: Optional[StorageBackend] = None):
        self._storage = storage

    @property
    def storage(self) -> StorageBackend:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    def build(self, content: TailoredResumeContent, candidate_name: Optional[str] = None) -> bytes:
        document = Document()
        style = document.styles["Normal"]
        style.font.name = "Calibri"
        style.font.size = Pt(10.5)

        if candidate_name:
            document.add_heading(candidate_name, level=0)
        document.add_heading(content.professional_title, level=1)
        document.add_paragraph(content.summary)

        for section in content.sections:
            document.add_heading(section.heading, level=2)
            for item in section.items:
                document.add_paragraph(item, style="List Bullet")

        if content.skills:
            document.add_heading("Skills", level=2)
            document.add_paragraph(", ".join(content.skills))

        buffer = BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    def render(
        self,
        content: TailoredResumeContent,
        owner_id: str,
        job_id: str,
        candidate_name: Optional[str] = None,
    ) -> RenderedDocument:
        try:
            data = self.build(content, candidate_name=candidate_name)
        except (ValueError, KeyError) as e:
            raise RenderError(f"Could not build document for job {job_id}: {e}") from e

        key = f"tailored/{owner_id}/{job_id}-{_slug(content.professional_title)}.docx"
        try:
            path = self.storage.upload_bytes(data, key)
        except Exception as e:
            raise RenderError(f"Could not store document for job {job_id}: {e}") from e

        logger.info(f"[Tailor] Rendered {len(data)} bytes to {path}")
        return RenderedDocument(path=path, content_type=self.CONTENT_TYPE, size_bytes=len(data))
