import json
from typing import List

from app.schemas.grading import Boundary, GradingBoundary, GradingTemplate

DEFAULT_COLORS = [
    "#10B981",  # A
    "#3B82F6",  # B
    "#F59E0B",  # C
    "#F97316",  # D
    "#EF4444",  # F
]


def default_boundaries() -> GradingBoundary:
    """The A-F scale a new grading boundary starts from."""
    rows = [
        ("1", "A", 90, 100, "Excellent"),
        ("2", "B", 80, 89, "Good"),
        ("3", "C", 70, 79, "Satisfactory"),
        ("4", "D", 60, 69, "Needs Improvement"),
        ("5", "F", 0, 59, "Failing"),
    ]
    return GradingBoundary(
        name="Standard A-F",
        description="Letter grades in ten point bands",
        boundaries=[
            Boundary(
                id=boundary_id,
                grade=grade,
                min_percentage=low,
                max_percentage=high,
                description=description,
                color=DEFAULT_COLORS[index],
            )
            for index, (boundary_id, grade, low, high, description) in enumerate(rows)
        ],
    )


def _ib_seven_point() -> dict:
    rows = [
        ("7", "Excellent", 85, 100, "#4CAF50"),
        ("6", "Very Good", 75, 84, "#8BC34A"),
        ("5", "Good", 65, 74, "#CDDC39"),
        ("4", "Satisfactory", 55, 64, "#FFEB3B"),
        ("3", "Mediocre", 45, 54, "#FF9800"),
        ("2", "Poor", 35, 44, "#FF5722"),
        ("1", "Very Poor", 0, 34, "#F44336"),
    ]
    return {
        "name": "IB 7-Point Scale",
        "description": "International Baccalaureate 7-point grading scale",
        "boundaries": [
            {
                "id": f"ib{grade}",
                "grade": grade,
                "description": description,
                "minPercentage": low,
                "maxPercentage": high,
                "color": color,
            }
            for grade, description, low, high, color in rows
        ],
    }


def _ib_criterion(letter: str, title: str, description: str) -> dict:
    bands = [
        ("Level 1-2 (Limited)", 2, "#FF9800"),
        ("Level 3-4 (Adequate)", 4, "#FFEB3B"),
        ("Level 5-6 (Substantial)", 6, "#8BC34A"),
        ("Level 7-8 (Excellent)", 8, "#4CAF50"),
    ]
    return {
        "id": letter,
        "title": f"Criterion {letter.upper()} - {title}",
        "description": description,
        "levels": [
            {
                "id": f"{letter}{index + 1}",
                "name": name,
                "description": "",
                "points": points,
                "color": color,
            }
            for index, (name, points, color) in enumerate(bands)
        ],
    }


def _ib_rubric() -> dict:
    return {
        "name": "IB Complete Rubric",
        "description": "Complete IB assessment rubric with all four criteria",
        "criteria": [
            _ib_criterion("a", "Knowledge and Understanding", "Demonstrate knowledge and understanding of subject-specific content."),
            _ib_criterion("b", "Application and Analysis", "Apply knowledge and understanding to construct and appraise arguments."),
            _ib_criterion("c", "Synthesis and Evaluation", "Make reasoned, substantiated judgments and solve problems."),
            _ib_criterion("d", "Use and Application of Appropriate Skills", "Use and apply appropriate skills and techniques."),
        ],
    }


def _ap_rubric() -> dict:
    names = ["No Response", "Poor", "Weak", "Limited", "Adequate", "Strong", "Excellent"]
    return {
        "name": "AP Standard Rubric",
        "description": "Advanced Placement standard scoring rubric",
        "criteria": [
            {
                "id": "ap",
                "title": "AP Response Quality",
                "description": "Assessment of response quality across multiple dimensions",
                "levels": [
                    {"id": f"ap{score}", "name": f"Score {score} - {names[score]}", "points": score}
                    for score in range(6, -1, -1)
                ],
            }
        ],
    }


def list_templates() -> List[GradingTemplate]:
    standard = default_boundaries()
    return [
        GradingTemplate(
            id="standard-a-f",
            name=standard.name,
            description=standard.description,
            category="Custom",
            kind="boundary",
            structured=standard.model_dump_json(by_alias=True),
        ),
        GradingTemplate(
            id="ib-7-point",
            name="IB 7-Point Scale",
            description="Standard IB 7-point grading scale",
            category="IB",
            kind="boundary",
            structured=json.dumps(_ib_seven_point()),
        ),
        GradingTemplate(
            id="ib-complete",
            name="IB Complete Rubric (A-D)",
            description="Complete IB rubric with all four criteria (A, B, C, D)",
            category="IB",
            kind="rubric",
            structured=json.dumps(_ib_rubric()),
        ),
        GradingTemplate(
            id="ap-rubric",
            name="AP Standard Rubric",
            description="Standard AP scoring rubric with 0-6 scale",
            category="AP",
            kind="rubric",
            structured=json.dumps(_ap_rubric()),
        ),
    ]
