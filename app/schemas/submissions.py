from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class SubmissionCreate(BaseModel):
    assignment_id: str
    class_id: str
    student_id: str


class SubmissionUpdate(BaseModel):
    submitted: Optional[bool] = None
    returned: Optional[bool] = None
    rubric_state: Optional[str] = None   # verbatim JSON text
    feedback: Optional[str] = None
    grade_received: Optional[float] = None


class SubmissionResponse(BaseModel):
    id: str
    assignment_id: str
    class_id: Optional[str] = None
    student_id: Optional[str] = None
    submitted: Optional[bool] = None
    returned: Optional[bool] = None
    submitted_at: Optional[datetime] = None
    rubric_state: Optional[str] = None
    feedback: Optional[str] = None
    grade_received: Optional[float] = None
    revision: Optional[int] = None

    class Config:
        populate_by_name = True
