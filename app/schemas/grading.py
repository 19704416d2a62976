from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class Level(BaseModel):
    id: str
    name: str
    description: str = ""
    points: float
    color: Optional[str] = None

    class Config:
        frozen = True


class Criterion(BaseModel):
    id: str
    title: str
    description: str = ""
    levels: List[Level] = Field(default_factory=list)

    class Config:
        frozen = True


class RubricScheme(BaseModel):
    id: Optional[str] = None
    name: str = "Untitled Rubric"
    description: str = ""
    criteria: List[Criterion] = Field(default_factory=list)

    class Config:
        frozen = True


class Boundary(BaseModel):
    id: Optional[str] = None
    grade: str
    min_percentage: float = Field(alias="minPercentage")
    max_percentage: float = Field(alias="maxPercentage")
    description: str = ""
    color: Optional[str] = None

    class Config:
        frozen = True
        populate_by_name = True


class GradingBoundary(BaseModel):
    id: Optional[str] = None
    name: str = "Untitled Grading Boundary"
    description: str = ""
    boundaries: List[Boundary] = Field(default_factory=list)

    class Config:
        frozen = True


class RubricGrade(BaseModel):
    """Per-submission rubric state: selected level and optional override per criterion."""
    selections: Dict[str, str] = Field(default_factory=dict)
    overrides: Dict[str, float] = Field(default_factory=dict)
    comments: Dict[str, str] = Field(default_factory=dict)
    feedback: Optional[str] = None


class GradeSummary(BaseModel):
    total_score: float
    max_points: float
    percentage: Optional[float] = None
    grade: str = "N/A"
    color: str
    description: Optional[str] = None


# Storage rows; `structured` is opaque JSON text and round-trips verbatim
class MarkSchemeCreate(BaseModel):
    class_id: str
    structured: str


class MarkSchemeResponse(BaseModel):
    id: str
    class_id: Optional[str] = None
    structured: str


class GradingBoundaryCreate(BaseModel):
    class_id: str
    structured: str


class GradingBoundaryResponse(BaseModel):
    id: str
    class_id: Optional[str] = None
    structured: str


class GradingTemplate(BaseModel):
    id: str
    name: str
    description: str
    category: str
    kind: str  # 'rubric' or 'boundary'
    structured: str
