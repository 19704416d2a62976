"""
Rubric score and letter grade computation.

All functions here are pure: the same scheme, grade and boundary set always
produce the same result, regardless of criterion or boundary ordering.
"""
import logging
from typing import Iterable, List, Optional

from app.core.errors import EmptyLevelsError
from app.schemas.grading import (
    Boundary,
    Criterion,
    GradeSummary,
    GradingBoundary,
    RubricGrade,
    RubricScheme,
)

logger = logging.getLogger(__name__)

NO_GRADE = "N/A"
NEUTRAL_COLOR = "#e5e7eb"


def criterion_max_points(criterion: Criterion) -> float:
    if not criterion.levels:
        raise EmptyLevelsError(criterion.id)
    return max(level.points for level in criterion.levels)


def scheme_max_points(scheme: RubricScheme) -> float:
    return sum(criterion_max_points(c) for c in scheme.criteria)


def criterion_score(grade: RubricGrade, criterion: Criterion) -> float:
    """Override if present, else the selected level's points, else 0."""
    if criterion.id in grade.overrides:
        return grade.overrides[criterion.id]
    level_id = grade.selections.get(criterion.id)
    if level_id is None:
        return 0
    for level in criterion.levels:
        if level.id == level_id:
            return level.points
    # Selection points at a level that no longer exists in this scheme version
    return 0


def total_score(grade: RubricGrade, scheme: RubricScheme) -> float:
    return sum(criterion_score(grade, c) for c in scheme.criteria)


def percentage(grade: RubricGrade, scheme: RubricScheme) -> Optional[float]:
    """Percentage of the maximum achievable score; None when the maximum is zero."""
    max_points = scheme_max_points(scheme)
    if max_points == 0:
        return None
    return 100 * total_score(grade, scheme) / max_points


def _lookup_order(boundaries: Iterable[Boundary]) -> List[Boundary]:
    # Highest minPercentage first; the remaining keys only make reordered
    # input lists resolve identically.
    return sorted(
        boundaries,
        key=lambda b: (-b.min_percentage, -b.max_percentage, b.grade, b.id or ""),
    )


def match_boundary(pct: Optional[float], boundary: GradingBoundary) -> Optional[Boundary]:
    if pct is None:
        return None
    for candidate in _lookup_order(boundary.boundaries):
        if candidate.min_percentage <= pct <= candidate.max_percentage:
            return candidate
    return None


def grade_for_percentage(pct: Optional[float], boundary: GradingBoundary) -> str:
    """Letter grade for a percentage; gaps and undefined percentages yield "N/A"."""
    matched = match_boundary(pct, boundary)
    return matched.grade if matched else NO_GRADE


def grade_color(pct: Optional[float], boundary: GradingBoundary) -> str:
    matched = match_boundary(pct, boundary)
    if matched and matched.color:
        return matched.color
    return NEUTRAL_COLOR


def _usable_criteria(scheme: RubricScheme, strict: bool) -> List[Criterion]:
    usable = []
    for criterion in scheme.criteria:
        if criterion.levels:
            usable.append(criterion)
        elif strict:
            raise EmptyLevelsError(criterion.id)
        else:
            logger.error(
                "Criterion %s in scheme %s has no levels; scoring it as 0",
                criterion.id,
                scheme.id,
            )
    return usable


def summarize_grade(
    grade: RubricGrade,
    scheme: RubricScheme,
    boundary: Optional[GradingBoundary] = None,
    strict: bool = False,
) -> GradeSummary:
    """
    Score, percentage and letter grade for one submission.

    With strict=False a criterion without levels contributes nothing to either
    the score or the maximum instead of raising EmptyLevelsError.
    """
    usable = RubricScheme(
        id=scheme.id,
        name=scheme.name,
        description=scheme.description,
        criteria=_usable_criteria(scheme, strict),
    )
    score = total_score(grade, usable)
    max_points = scheme_max_points(usable)
    pct = percentage(grade, usable)

    matched = match_boundary(pct, boundary) if boundary else None
    return GradeSummary(
        total_score=score,
        max_points=max_points,
        percentage=pct,
        grade=matched.grade if matched else NO_GRADE,
        color=(matched.color if matched and matched.color else NEUTRAL_COLOR),
        description=matched.description if matched else None,
    )


def default_grade(scheme: RubricScheme) -> RubricGrade:
    """A grade selecting the first declared level of every criterion."""
    return RubricGrade(
        selections={c.id: c.levels[0].id for c in scheme.criteria if c.levels},
    )
