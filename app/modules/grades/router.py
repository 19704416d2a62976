import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException
from supabase import Client
from app.core.config import settings
from app.core.errors import EmptyLevelsError
from app.db.supabase import get_supabase
from app.db.models import ASSIGNMENTS, SUBMISSIONS, MARK_SCHEMES, GRADING_BOUNDARIES
from app.grading.adapter import load_boundary, load_rubric, parse_rubric_state
from app.grading.calculator import summarize_grade
from app.grading.templates import list_templates
from app.schemas.grading import (
    GradeSummary,
    GradingBoundaryCreate,
    GradingBoundaryResponse,
    GradingTemplate,
    MarkSchemeCreate,
    MarkSchemeResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Grades"])


def _fetch_one(supabase: Client, table: str, row_id: str, not_found: str) -> dict:
    result = supabase.table(table).select("*").eq("id", row_id).execute()
    if not result.data:
        raise HTTPException(status_code=404, detail=not_found)
    return result.data[0]


@router.post("/mark-schemes", response_model=MarkSchemeResponse)
def create_mark_scheme(
    mark_scheme: MarkSchemeCreate,
    supabase: Client = Depends(get_supabase)
):
    """
    Store a new mark scheme version. The structured text is kept verbatim.
    """
    try:
        row = dict(mark_scheme.model_dump(), id=str(uuid.uuid4()))
        result = supabase.table(MARK_SCHEMES).insert(row).execute()
        return MarkSchemeResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Create mark scheme error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/mark-schemes/{mark_scheme_id}", response_model=MarkSchemeResponse)
def get_mark_scheme(mark_scheme_id: str, supabase: Client = Depends(get_supabase)):
    try:
        return MarkSchemeResponse(**_fetch_one(supabase, MARK_SCHEMES, mark_scheme_id, "Mark scheme not found"))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get mark scheme error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/boundaries", response_model=GradingBoundaryResponse)
def create_grading_boundary(
    grading_boundary: GradingBoundaryCreate,
    supabase: Client = Depends(get_supabase)
):
    """
    Store a new grading boundary version. The structured text is kept verbatim.
    """
    try:
        row = dict(grading_boundary.model_dump(), id=str(uuid.uuid4()))
        result = supabase.table(GRADING_BOUNDARIES).insert(row).execute()
        return GradingBoundaryResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Create grading boundary error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/boundaries/{grading_boundary_id}", response_model=GradingBoundaryResponse)
def get_grading_boundary(grading_boundary_id: str, supabase: Client = Depends(get_supabase)):
    try:
        return GradingBoundaryResponse(
            **_fetch_one(supabase, GRADING_BOUNDARIES, grading_boundary_id, "Grading boundary not found")
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get grading boundary error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/templates", response_model=list[GradingTemplate])
def get_templates():
    """Built-in rubric and grading boundary templates."""
    return list_templates()


@router.get("/submission/{submission_id}", response_model=GradeSummary)
def get_submission_grade(
    submission_id: str,
    supabase: Client = Depends(get_supabase)
):
    """
    Computed rubric score, percentage and letter grade for a submission.
    """
    try:
        submission = _fetch_one(supabase, SUBMISSIONS, submission_id, "Submission not found")
        assignment = _fetch_one(supabase, ASSIGNMENTS, submission["assignment_id"], "Assignment not found")

        scheme = load_rubric(None)
        if assignment.get("mark_scheme_id"):
            row = supabase.table(MARK_SCHEMES).select("id, structured").eq("id", assignment["mark_scheme_id"]).execute()
            if row.data:
                scheme = load_rubric(row.data[0]["structured"], row.data[0]["id"])

        boundary = None
        if assignment.get("grading_boundary_id"):
            row = supabase.table(GRADING_BOUNDARIES).select("id, structured").eq("id", assignment["grading_boundary_id"]).execute()
            if row.data:
                boundary = load_boundary(row.data[0]["structured"], row.data[0]["id"])

        grade = parse_rubric_state(submission.get("rubric_state"))
        return summarize_grade(grade, scheme, boundary, strict=settings.GRADING_STRICT)
    except HTTPException:
        raise
    except EmptyLevelsError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception:
        logger.exception("Get submission grade error")
        raise HTTPException(status_code=500, detail="Internal server error")
