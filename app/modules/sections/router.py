import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException
from supabase import Client
from app.db.supabase import get_supabase
from app.db.models import SECTIONS, next_revision
from app.schemas.sections import SectionCreate, SectionUpdate, SectionResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Sections"])


@router.post("/", response_model=SectionResponse)
def create_section(section: SectionCreate, supabase: Client = Depends(get_supabase)):
    try:
        section_data = dict(section.model_dump(), id=str(uuid.uuid4()), revision=1)
        result = supabase.table(SECTIONS).insert(section_data).execute()
        return SectionResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Create section error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{section_id}", response_model=SectionResponse)
def get_section(section_id: str, supabase: Client = Depends(get_supabase)):
    try:
        result = supabase.table(SECTIONS).select("*").eq("id", section_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Section not found")
        return SectionResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get section error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/{section_id}", response_model=SectionResponse)
def update_section(section_id: str, section: SectionUpdate, supabase: Client = Depends(get_supabase)):
    try:
        existing = supabase.table(SECTIONS).select("*").eq("id", section_id).execute()
        if not existing.data:
            raise HTTPException(status_code=404, detail="Section not found")

        update_data = section.model_dump(exclude_unset=True)
        update_data["revision"] = next_revision(existing.data[0])

        result = supabase.table(SECTIONS).update(update_data).eq("id", section_id).execute()
        return SectionResponse(**result.data[0])
    except HTTPException:
        raise
    except Exception:
        logger.exception("Update section error")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{section_id}")
def delete_section(section_id: str, supabase: Client = Depends(get_supabase)):
    try:
        result = supabase.table(SECTIONS).delete().eq("id", section_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Section not found")
        return {"message": "Section deleted successfully", "id": section_id}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Delete section error")
        raise HTTPException(status_code=500, detail="Internal server error")
