import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException
from supabase import Client
from app.core.config import settings
from app.db.supabase import get_supabase
from app.db.models import ASSIGNMENTS, SUBMISSIONS, MARK_SCHEMES, utc_now, next_revision
from app.grading.adapter import load_rubric, parse_rubric_state
from app.grading.calculator import summarize_grade
from app.schemas.submissions import SubmissionCreate, SubmissionUpdate, SubmissionResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Submissions"])


def score_rubric_state(assignment_id: str, rubric_state: str, supabase: Client):
    """Total rubric score for a submission's selections, or None without a mark scheme."""
    assignment = supabase.table(ASSIGNMENTS).select("id, mark_scheme_id").eq("id", assignment_id).execute()
    if not assignment.data or not assignment.data[0].get("mark_scheme_id"):
        return None

    mark_scheme_id = assignment.data[0]["mark_scheme_id"]
    scheme_row = supabase.table(MARK_SCHEMES).select("id, structured").eq("id", mark_scheme_id).execute()
    if not scheme_row.data:
        return None

    scheme = load_rubric(scheme_row.data[0]["structured"], mark_scheme_id)
    summary = summarize_grade(parse_rubric_state(rubric_state), scheme, strict=settings.GRADING_STRICT)
    return summary.total_score


@router.post("/", response_model=SubmissionResponse)
def create_submission(
    submission: SubmissionCreate,
    supabase: Client = Depends(get_supabase)
):
    """
    Create a student's submission for an assignment.
    """
    try:
        assignment_result = supabase.table(ASSIGNMENTS).select("id, class_id").eq("id", submission.assignment_id).execute()
        if not assignment_result.data:
            raise HTTPException(status_code=404, detail="Assignment not found")

        if assignment_result.data[0]["class_id"] != submission.class_id:
            raise HTTPException(status_code=400, detail="Class ID does not match assignment's class")

        existing = supabase.table(SUBMISSIONS).select("id").eq("assignment_id", submission.assignment_id).eq("student_id", submission.student_id).execute()
        if existing.data:
            raise HTTPException(status_code=400, detail="Submission already exists")

        submission_data = submission.model_dump()
        submission_data.update({
            "id": str(uuid.uuid4()),
            "submitted": False,
            "returned": False,
            "revision": 1
        })

        result = supabase.table(SUBMISSIONS).insert(submission_data).execute()
        return SubmissionResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Create submission error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/assignment/{assignment_id}", response_model=list[SubmissionResponse])
def get_assignment_submissions(
    assignment_id: str,
    supabase: Client = Depends(get_supabase)
):
    """
    Get all submissions for an assignment.
    """
    try:
        result = supabase.table(SUBMISSIONS).select("*").eq("assignment_id", assignment_id).execute()
        return [SubmissionResponse(**row) for row in result.data]
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get assignment submissions error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{submission_id}", response_model=SubmissionResponse)
def get_submission(
    submission_id: str,
    supabase: Client = Depends(get_supabase)
):
    """
    Get specific submission by ID.
    """
    try:
        result = supabase.table(SUBMISSIONS).select("*").eq("id", submission_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Submission not found")
        return SubmissionResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get submission error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/{submission_id}", response_model=SubmissionResponse)
def update_submission(
    submission_id: str,
    submission: SubmissionUpdate,
    supabase: Client = Depends(get_supabase)
):
    """
    Apply a partial update. A new rubric_state also recomputes grade_received.
    """
    try:
        existing = supabase.table(SUBMISSIONS).select("*").eq("id", submission_id).execute()
        if not existing.data:
            raise HTTPException(status_code=404, detail="Submission not found")

        record = existing.data[0]
        update_data = submission.model_dump(exclude_unset=True)

        if submission.submitted and not record.get("submitted"):
            update_data["submitted_at"] = utc_now()

        if submission.rubric_state is not None:
            score = score_rubric_state(record["assignment_id"], submission.rubric_state, supabase)
            if score is not None:
                update_data["grade_received"] = score

        update_data["revision"] = next_revision(record)

        result = supabase.table(SUBMISSIONS).update(update_data).eq("id", submission_id).execute()
        return SubmissionResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Update submission error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{submission_id}")
def delete_submission(
    submission_id: str,
    supabase: Client = Depends(get_supabase)
):
    """
    Delete a submission.
    """
    try:
        result = supabase.table(SUBMISSIONS).delete().eq("id", submission_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Submission not found")
        return {"message": "Submission deleted successfully", "id": submission_id}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Delete submission error")
        raise HTTPException(status_code=500, detail="Internal server error")
