from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime

AssignmentType = Literal[
    "HOMEWORK", "QUIZ", "TEST", "PROJECT", "ESSAY",
    "DISCUSSION", "PRESENTATION", "LAB", "OTHER",
]


class AttachmentMeta(BaseModel):
    name: str
    type: str
    size: int


class Attachment(AttachmentMeta):
    id: str


class AssignmentCreate(BaseModel):
    class_id: str
    title: str
    instructions: Optional[str] = None
    due_date: Optional[datetime] = None
    max_grade: Optional[float] = None
    graded: bool = False
    weight: Optional[float] = None
    type: AssignmentType = "HOMEWORK"
    section_id: Optional[str] = None
    mark_scheme_id: Optional[str] = None
    grading_boundary_id: Optional[str] = None


class AssignmentUpdate(BaseModel):
    title: Optional[str] = None
    instructions: Optional[str] = None
    due_date: Optional[datetime] = None
    max_grade: Optional[float] = None
    graded: Optional[bool] = None
    weight: Optional[float] = None
    type: Optional[AssignmentType] = None
    section_id: Optional[str] = None
    mark_scheme_id: Optional[str] = None
    grading_boundary_id: Optional[str] = None
    new_attachments: List[AttachmentMeta] = Field(default_factory=list)
    removed_attachments: List[str] = Field(default_factory=list)


class StructuredRef(BaseModel):
    id: str
    structured: str


class AssignmentResponse(BaseModel):
    id: str
    class_id: str
    title: Optional[str] = None
    instructions: Optional[str] = None
    due_date: Optional[datetime] = None
    max_grade: Optional[float] = None
    graded: Optional[bool] = None
    weight: Optional[float] = None
    type: Optional[AssignmentType] = None
    section_id: Optional[str] = None
    mark_scheme_id: Optional[str] = None
    grading_boundary_id: Optional[str] = None
    mark_scheme: Optional[StructuredRef] = None
    grading_boundary: Optional[StructuredRef] = None
    attachments: List[Attachment] = Field(default_factory=list)
    revision: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
