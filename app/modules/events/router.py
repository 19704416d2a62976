import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException
from supabase import Client
from app.db.supabase import get_supabase
from app.db.models import ASSIGNMENTS, EVENTS, next_revision
from app.schemas.events import EventCreate, EventUpdate, EventAttachAssignment, EventResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Events"])


@router.post("/", response_model=EventResponse)
def create_event(event: EventCreate, supabase: Client = Depends(get_supabase)):
    """
    Create a class event.
    """
    try:
        if event.end_time < event.start_time:
            raise HTTPException(status_code=400, detail="Event cannot end before it starts")

        event_data = dict(
            event.model_dump(mode="json"),
            id=str(uuid.uuid4()),
            assignment_ids=[],
            revision=1,
        )
        result = supabase.table(EVENTS).insert(event_data).execute()
        return EventResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Create event error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{event_id}", response_model=EventResponse)
def get_event(event_id: str, supabase: Client = Depends(get_supabase)):
    try:
        result = supabase.table(EVENTS).select("*").eq("id", event_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Event not found")
        return EventResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get event error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/{event_id}", response_model=EventResponse)
def update_event(event_id: str, event: EventUpdate, supabase: Client = Depends(get_supabase)):
    try:
        existing = supabase.table(EVENTS).select("*").eq("id", event_id).execute()
        if not existing.data:
            raise HTTPException(status_code=404, detail="Event not found")

        update_data = event.model_dump(mode="json", exclude_unset=True)
        update_data["revision"] = next_revision(existing.data[0])

        result = supabase.table(EVENTS).update(update_data).eq("id", event_id).execute()
        return EventResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Update event error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{event_id}/assignments", response_model=EventResponse)
def attach_assignment(
    event_id: str,
    body: EventAttachAssignment,
    supabase: Client = Depends(get_supabase)
):
    """
    Attach an assignment to an event. Attaching twice is a no-op apart from the revision bump.
    """
    try:
        existing = supabase.table(EVENTS).select("*").eq("id", event_id).execute()
        if not existing.data:
            raise HTTPException(status_code=404, detail="Event not found")

        assignment = supabase.table(ASSIGNMENTS).select("id").eq("id", body.assignment_id).execute()
        if not assignment.data:
            raise HTTPException(status_code=404, detail="Assignment not found")

        record = existing.data[0]
        assignment_ids = list(record.get("assignment_ids") or [])
        if body.assignment_id not in assignment_ids:
            assignment_ids.append(body.assignment_id)

        result = supabase.table(EVENTS).update({
            "assignment_ids": assignment_ids,
            "revision": next_revision(record),
        }).eq("id", event_id).execute()
        return EventResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Attach assignment to event error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{event_id}")
def delete_event(event_id: str, supabase: Client = Depends(get_supabase)):
    try:
        result = supabase.table(EVENTS).delete().eq("id", event_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Event not found")
        return {"message": "Event deleted successfully", "id": event_id}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Delete event error")
        raise HTTPException(status_code=500, detail="Internal server error")
