"""
Locally held, server-backed records and their ingress validation.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from app.core.errors import SnapshotValidationError
from app.schemas.assignments import AssignmentResponse, AttachmentMeta
from app.schemas.events import EventResponse
from app.schemas.sections import SectionResponse
from app.schemas.submissions import SubmissionResponse


class RecordKind(str, Enum):
    ASSIGNMENT = "assignment"
    SUBMISSION = "submission"
    EVENT = "event"
    SECTION = "section"


class AssignmentSnapshot(AssignmentResponse):
    class Config:
        extra = "allow"


class SubmissionSnapshot(SubmissionResponse):
    class Config:
        extra = "allow"


class EventSnapshot(EventResponse):
    class Config:
        extra = "allow"


class SectionSnapshot(SectionResponse):
    class Config:
        extra = "allow"


SNAPSHOT_MODELS: Dict[RecordKind, Type[BaseModel]] = {
    RecordKind.ASSIGNMENT: AssignmentSnapshot,
    RecordKind.SUBMISSION: SubmissionSnapshot,
    RecordKind.EVENT: EventSnapshot,
    RecordKind.SECTION: SectionSnapshot,
}

_MISSING = object()

# Fields that describe the record rather than hold editable state
META_FIELDS = ("id", "revision")


def validate_snapshot(kind: RecordKind, payload: Any) -> Dict[str, Any]:
    """
    Validate a gateway/channel payload for a record kind.

    Returns only the fields the payload carried, JSON-normalized, so a
    partial snapshot never blanks out fields it did not mention.
    """
    if not isinstance(payload, dict):
        raise SnapshotValidationError(f"{kind.value} snapshot must be an object, got {type(payload).__name__}")
    try:
        model = SNAPSHOT_MODELS[kind].model_validate(payload)
    except ValidationError as e:
        raise SnapshotValidationError(f"Invalid {kind.value} snapshot: {e}")
    return model.model_dump(mode="json", exclude_unset=True)


@dataclass(frozen=True)
class Record:
    """
    One record in local reconciled state.

    acknowledged holds the field values last confirmed by the store;
    new_attachments / removed_attachments are staged changes that have no
    server identifier yet.
    """
    kind: RecordKind
    id: str
    fields: Dict[str, Any] = field(default_factory=dict)
    acknowledged: Dict[str, Any] = field(default_factory=dict)
    dirty: bool = False
    revision: Optional[int] = None
    new_attachments: Tuple[AttachmentMeta, ...] = ()
    removed_attachments: Tuple[str, ...] = ()

    @property
    def key(self) -> Tuple[RecordKind, str]:
        return (self.kind, self.id)

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def pending_patch(self) -> Dict[str, Any]:
        """Fields whose local value differs from the last acknowledged value."""
        return {
            name: value
            for name, value in self.fields.items()
            if name not in META_FIELDS and self.acknowledged.get(name, _MISSING) != value
        }

    def has_staged_attachments(self) -> bool:
        return bool(self.new_attachments or self.removed_attachments)


def record_from_snapshot(kind: RecordKind, payload: Any) -> Record:
    """Build a clean record from a canonical payload (query result or creation)."""
    data = validate_snapshot(kind, payload)
    return Record(
        kind=kind,
        id=str(data["id"]),
        fields=dict(data),
        acknowledged=dict(data),
        dirty=False,
        revision=data.get("revision"),
    )


def snapshot_id(payload: Any) -> Optional[str]:
    """Id carried by a deletion payload: either the bare id or an object with one."""
    if isinstance(payload, (str, int)):
        return str(payload)
    if isinstance(payload, dict) and payload.get("id") is not None:
        return str(payload["id"])
    return None


def attachment_list(items: List[Any]) -> Tuple[AttachmentMeta, ...]:
    return tuple(a if isinstance(a, AttachmentMeta) else AttachmentMeta(**a) for a in items)
