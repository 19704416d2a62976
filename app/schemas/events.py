from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class EventCreate(BaseModel):
    class_id: str
    name: str
    location: Optional[str] = None
    remarks: Optional[str] = None
    start_time: datetime
    end_time: datetime
    color: Optional[str] = None


class EventUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    remarks: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    color: Optional[str] = None


class EventAttachAssignment(BaseModel):
    assignment_id: str


class EventResponse(BaseModel):
    id: str
    class_id: str
    name: Optional[str] = None
    location: Optional[str] = None
    remarks: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    color: Optional[str] = None
    assignment_ids: List[str] = Field(default_factory=list)
    revision: Optional[int] = None
