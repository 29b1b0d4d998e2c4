import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.crud import resume as resume_crud
from app.schemas.resume import ResumeCreateRequest, ResumeResponse

router = APIRouter(prefix="/resumes", tags=["Resumes"])
logger = logging.getLogger(__name__)


@router.post("/", status_code=201, response_model=ResumeResponse)
def create_resume(request: ResumeCreateRequest, db: Session = Depends(get_db)):
    """
    Store a master resume. The returned id is what a campaign launch
    references as resume_id.
    """
    resume = resume_crud.create(
        db,
        owner_id=request.owner_id,
        text_content=request.text_content,
        original_name=request.original_name,
        is_master=True,
    )
    logger.info(f"Stored resume {resume.id} for owner {resume.owner_id}")
    return resume


@router.get("/{resume_id}", response_model=ResumeResponse)
def get_resume(
    resume_id: str,
    owner_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    resume = resume_crud.get_for_owner(db, resume_id, owner_id)
    if not resume:
        raise HTTPException(status_code=404, detail={"error": "not_found", "message": "Resume not found"})
    return resume
