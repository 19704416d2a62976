from datetime import datetime
from typing import Optional

# Supabase tables backing each record kind
ASSIGNMENTS = "assignments"
SUBMISSIONS = "submissions"
SECTIONS = "sections"
EVENTS = "events"
MARK_SCHEMES = "mark_schemes"
GRADING_BOUNDARIES = "grading_boundaries"


def utc_now() -> str:
    return datetime.utcnow().isoformat()


def next_revision(row: dict) -> int:
    """Revision a row gets on its next successful update."""
    current: Optional[int] = row.get("revision")
    return (current or 0) + 1
