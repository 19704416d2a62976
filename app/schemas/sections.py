from pydantic import BaseModel
from typing import Optional


class SectionCreate(BaseModel):
    class_id: str
    name: str
    color: Optional[str] = None


class SectionUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


class SectionResponse(BaseModel):
    id: str
    class_id: str
    name: Optional[str] = None
    color: Optional[str] = None
    revision: Optional[int] = None
