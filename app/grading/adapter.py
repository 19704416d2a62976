"""
Normalizes structured rubric / grading-boundary JSON into canonical models.

Two historical encodings exist for rubrics:

- canonical: ``{"criteria": [{"id", "title", "levels": [...]}, ...]}``
- legacy markscheme: ``{"items": [{"maxPoints", "criteria": [str, ...]}, ...]}``

and two for grading boundaries:

- canonical: ``{"boundaries": [...]}``
- legacy: a bare list of boundary objects

Everything is resolved here, once, so grading code only ever sees
RubricScheme and GradingBoundary.
"""
import json
import logging
import math
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from app.core.errors import UnrecognizedSchemaError
from app.schemas.grading import (
    Boundary,
    Criterion,
    GradingBoundary,
    Level,
    RubricGrade,
    RubricScheme,
)

logger = logging.getLogger(__name__)

LEGACY_DEFAULT_MAX_POINTS = 4

# (level id, name, fraction of maxPoints, color, fallback description)
LEGACY_LEVELS = [
    ("excellent", "Excellent", 1.0, "#4CAF50", "Outstanding performance"),
    ("good", "Good", 0.75, "#8BC34A", "Good performance"),
    ("satisfactory", "Satisfactory", 0.5, "#FFEB3B", "Adequate performance"),
    ("needs-improvement", "Needs Improvement", 0.25, "#FF9800", "Below expectations"),
]

StructuredJSON = Union[str, bytes, Dict[str, Any], List[Any]]


def _load(raw: StructuredJSON) -> Any:
    if isinstance(raw, (str, bytes)):
        try:
            return json.loads(raw)
        except ValueError as e:
            raise UnrecognizedSchemaError(f"Malformed structured JSON: {e}")
    return raw


def _legacy_criterion(item: Dict[str, Any], index: int) -> Criterion:
    max_points = item.get("maxPoints") or LEGACY_DEFAULT_MAX_POINTS
    texts = item.get("criteria")
    if not isinstance(texts, list):
        texts = []

    levels = []
    for position, (level_id, name, fraction, color, fallback) in enumerate(LEGACY_LEVELS):
        points = max_points if fraction == 1.0 else math.floor(max_points * fraction)
        text = texts[position] if position < len(texts) else None
        description = text if isinstance(text, str) and text else fallback
        levels.append(
            Level(id=level_id, name=name, description=description, points=points, color=color)
        )

    return Criterion(
        id=str(item.get("id") or f"criteria-{index}"),
        title=item.get("title") or f"Criteria {index + 1}",
        description=item.get("description") or "",
        levels=levels,
    )


def _from_legacy_items(data: Dict[str, Any]) -> RubricScheme:
    items = data["items"]
    if not isinstance(items, list):
        raise UnrecognizedSchemaError("Legacy markscheme 'items' must be a list")
    criteria = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise UnrecognizedSchemaError(f"Legacy markscheme item {index} is not an object")
        criteria.append(_legacy_criterion(item, index))
    return RubricScheme(
        id=data.get("id"),
        name=data.get("name") or "Untitled Rubric",
        description=data.get("description") or "",
        criteria=criteria,
    )


def _boundary_row(row: Any) -> Dict[str, Any]:
    if not isinstance(row, dict):
        raise UnrecognizedSchemaError("Grading boundary entry is not an object")
    if "min_percentage" in row and "minPercentage" not in row:
        row = dict(row, minPercentage=row["min_percentage"])
    if "max_percentage" in row and "maxPercentage" not in row:
        row = dict(row, maxPercentage=row["max_percentage"])
    return row


def normalize(raw: StructuredJSON) -> Union[RubricScheme, GradingBoundary]:
    """
    Convert structured JSON into a RubricScheme or GradingBoundary.

    Raises:
        UnrecognizedSchemaError: malformed JSON, or none of the known shapes
    """
    data = _load(raw)

    try:
        if isinstance(data, list):
            return GradingBoundary(boundaries=[Boundary(**_boundary_row(r)) for r in data])

        if not isinstance(data, dict):
            raise UnrecognizedSchemaError("Structured JSON must be an object or a list")

        if "criteria" in data:
            return RubricScheme(**data)
        if "items" in data:
            return _from_legacy_items(data)
        if "boundaries" in data:
            rows = [_boundary_row(r) for r in data.get("boundaries") or []]
            return GradingBoundary(**dict(data, boundaries=rows))
    except ValidationError as e:
        raise UnrecognizedSchemaError(f"Structured JSON does not match its schema: {e}")
    except TypeError as e:
        raise UnrecognizedSchemaError(f"Structured JSON has unexpected types: {e}")

    raise UnrecognizedSchemaError("Structured JSON has neither 'criteria', 'items' nor 'boundaries'")


def load_rubric(raw: Optional[StructuredJSON], scheme_id: Optional[str] = None) -> RubricScheme:
    """Best-effort rubric load; falls back to an empty scheme and logs why."""
    if raw is None:
        return RubricScheme(id=scheme_id)
    try:
        result = normalize(raw)
    except UnrecognizedSchemaError as e:
        logger.warning("Unreadable mark scheme %s: %s", scheme_id, e)
        return RubricScheme(id=scheme_id)
    if not isinstance(result, RubricScheme):
        logger.warning("Mark scheme %s holds grading boundaries, not a rubric", scheme_id)
        return RubricScheme(id=scheme_id)
    if scheme_id is not None and result.id is None:
        result = result.model_copy(update={"id": scheme_id})
    return result


def load_boundary(raw: Optional[StructuredJSON], boundary_id: Optional[str] = None) -> GradingBoundary:
    """Best-effort boundary load; falls back to an empty boundary set and logs why."""
    if raw is None:
        return GradingBoundary(id=boundary_id)
    try:
        result = normalize(raw)
    except UnrecognizedSchemaError as e:
        logger.warning("Unreadable grading boundary %s: %s", boundary_id, e)
        return GradingBoundary(id=boundary_id)
    if not isinstance(result, GradingBoundary):
        logger.warning("Grading boundary %s holds a rubric, not boundaries", boundary_id)
        return GradingBoundary(id=boundary_id)
    if boundary_id is not None and result.id is None:
        result = result.model_copy(update={"id": boundary_id})
    return result


class SchemaCache:
    """
    Parsed schemes keyed by (id, structured text).

    A new version of a scheme arrives as different text, so it gets a new
    entry; an entry already handed out is never modified.
    """

    def __init__(self):
        self._rubrics: Dict[Tuple[Optional[str], str], RubricScheme] = {}
        self._boundaries: Dict[Tuple[Optional[str], str], GradingBoundary] = {}

    def rubric(self, scheme_id: Optional[str], structured: Optional[str]) -> RubricScheme:
        if structured is None:
            return RubricScheme(id=scheme_id)
        key = (scheme_id, structured)
        if key not in self._rubrics:
            self._rubrics[key] = load_rubric(structured, scheme_id)
        return self._rubrics[key]

    def boundary(self, boundary_id: Optional[str], structured: Optional[str]) -> GradingBoundary:
        if structured is None:
            return GradingBoundary(id=boundary_id)
        key = (boundary_id, structured)
        if key not in self._boundaries:
            self._boundaries[key] = load_boundary(structured, boundary_id)
        return self._boundaries[key]


def parse_rubric_state(raw: Optional[StructuredJSON]) -> RubricGrade:
    """
    Read a submission's rubric_state.

    The stored form is a list of ``{criteriaId, selectedLevelId, points,
    comments}``; ``points``, when present, overrides the level's points.
    Unreadable state yields an empty grade.
    """
    if raw is None or raw == "":
        return RubricGrade()
    try:
        data = _load(raw)
    except UnrecognizedSchemaError as e:
        logger.warning("Unreadable rubric state: %s", e)
        return RubricGrade()
    if not isinstance(data, list):
        logger.warning("Rubric state is not a list; ignoring it")
        return RubricGrade()

    selections, overrides, comments = {}, {}, {}
    for entry in data:
        if not isinstance(entry, dict) or not entry.get("criteriaId"):
            continue
        criterion_id = str(entry["criteriaId"])
        if entry.get("selectedLevelId"):
            selections[criterion_id] = str(entry["selectedLevelId"])
        if isinstance(entry.get("points"), (int, float)) and not isinstance(entry["points"], bool):
            overrides[criterion_id] = float(entry["points"])
        if entry.get("comments"):
            comments[criterion_id] = str(entry["comments"])
    return RubricGrade(selections=selections, overrides=overrides, comments=comments)


def dump_rubric_state(grade: RubricGrade) -> str:
    criterion_ids = sorted(set(grade.selections) | set(grade.overrides) | set(grade.comments))
    entries = []
    for criterion_id in criterion_ids:
        entry: Dict[str, Any] = {
            "criteriaId": criterion_id,
            "selectedLevelId": grade.selections.get(criterion_id, ""),
            "comments": grade.comments.get(criterion_id, ""),
        }
        if criterion_id in grade.overrides:
            entry["points"] = grade.overrides[criterion_id]
        entries.append(entry)
    return json.dumps(entries)
