import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException
from supabase import Client
from app.db.supabase import get_supabase
from app.db.models import ASSIGNMENTS, MARK_SCHEMES, GRADING_BOUNDARIES, utc_now, next_revision
from app.schemas.assignments import AssignmentCreate, AssignmentUpdate, AssignmentResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Assignments"])


def attach_grading_refs(assignment: dict, supabase: Client) -> dict:
    """Embed the mark scheme / grading boundary rows the assignment points at."""
    assignment["mark_scheme"] = None
    assignment["grading_boundary"] = None

    if assignment.get("mark_scheme_id"):
        result = supabase.table(MARK_SCHEMES).select("id, structured").eq("id", assignment["mark_scheme_id"]).execute()
        if result.data:
            assignment["mark_scheme"] = result.data[0]

    if assignment.get("grading_boundary_id"):
        result = supabase.table(GRADING_BOUNDARIES).select("id, structured").eq("id", assignment["grading_boundary_id"]).execute()
        if result.data:
            assignment["grading_boundary"] = result.data[0]

    return assignment


@router.post("/", response_model=AssignmentResponse)
def create_assignment(
    assignment: AssignmentCreate,
    supabase: Client = Depends(get_supabase)
):
    """
    Create a new assignment in a class.
    """
    try:
        assignment_data = assignment.model_dump(mode="json")
        assignment_data.update({
            "id": str(uuid.uuid4()),
            "attachments": [],
            "revision": 1,
            "created_at": utc_now(),
            "updated_at": utc_now()
        })

        result = supabase.table(ASSIGNMENTS).insert(assignment_data).execute()
        return AssignmentResponse(**attach_grading_refs(result.data[0], supabase))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Create assignment error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/class/{class_id}", response_model=list[AssignmentResponse])
def get_class_assignments(
    class_id: str,
    supabase: Client = Depends(get_supabase)
):
    """
    Get all assignments of a class.
    """
    try:
        result = supabase.table(ASSIGNMENTS).select("*").eq("class_id", class_id).execute()
        return [AssignmentResponse(**attach_grading_refs(row, supabase)) for row in result.data]
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get class assignments error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{assignment_id}", response_model=AssignmentResponse)
def get_assignment(
    assignment_id: str,
    supabase: Client = Depends(get_supabase)
):
    """
    Get specific assignment by ID, with its grading tools attached.
    """
    try:
        result = supabase.table(ASSIGNMENTS).select("*").eq("id", assignment_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Assignment not found")

        return AssignmentResponse(**attach_grading_refs(result.data[0], supabase))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get assignment error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/{assignment_id}", response_model=AssignmentResponse)
def update_assignment(
    assignment_id: str,
    assignment: AssignmentUpdate,
    supabase: Client = Depends(get_supabase)
):
    """
    Apply a partial update and return the canonical post-update assignment.
    """
    try:
        existing = supabase.table(ASSIGNMENTS).select("*").eq("id", assignment_id).execute()
        if not existing.data:
            raise HTTPException(status_code=404, detail="Assignment not found")

        record = existing.data[0]

        update_data = assignment.model_dump(
            mode="json",
            exclude_unset=True,
            exclude={"new_attachments", "removed_attachments"},
        )

        if assignment.new_attachments or assignment.removed_attachments:
            removed = set(assignment.removed_attachments)
            attachments = [a for a in record.get("attachments") or [] if a["id"] not in removed]
            for meta in assignment.new_attachments:
                attachments.append(dict(meta.model_dump(), id=str(uuid.uuid4())))
            update_data["attachments"] = attachments

        update_data["revision"] = next_revision(record)
        update_data["updated_at"] = utc_now()

        result = supabase.table(ASSIGNMENTS).update(update_data).eq("id", assignment_id).execute()
        return AssignmentResponse(**attach_grading_refs(result.data[0], supabase))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Update assignment error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{assignment_id}")
def delete_assignment(
    assignment_id: str,
    supabase: Client = Depends(get_supabase)
):
    """
    Delete an assignment.
    """
    try:
        result = supabase.table(ASSIGNMENTS).delete().eq("id", assignment_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Assignment not found")
        return {"message": "Assignment deleted successfully", "id": assignment_id}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Delete assignment error")
        raise HTTPException(status_code=500, detail="Internal server error")
