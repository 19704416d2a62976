"""
Local edit reconciliation.

Merge policy, per record:

- a local edit always wins and marks the record dirty;
- a broadcast snapshot overwrites the fields it carries, but only while the
  record is clean. A dirty record drops the whole snapshot, so a peer's
  concurrent change inside the same edit window is lost (no field-level
  conflict resolution);
- a snapshot older than the local revision is ignored whenever both sides
  carry a revision;
- reloading a dirty record from a query keeps its unsaved values and
  refreshes the rest.

The functions return new Record values and perform no I/O.
"""
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from app.schemas.assignments import AttachmentMeta
from app.sync.records import (
    Record,
    RecordKind,
    attachment_list,
    record_from_snapshot,
    validate_snapshot,
)

logger = logging.getLogger(__name__)

_MISSING = object()


def apply_local_edit(
    record: Record,
    patch: Dict[str, Any],
    new_attachments: Iterable[Any] = (),
    removed_attachments: Iterable[str] = (),
) -> Record:
    fields = dict(record.fields)
    fields.update(patch)

    staged_new = record.new_attachments + attachment_list(list(new_attachments))
    staged_removed = list(record.removed_attachments)
    dropped = set()
    for attachment_id in removed_attachments:
        if attachment_id not in staged_removed:
            staged_removed.append(attachment_id)
            dropped.add(attachment_id)
    if dropped:
        fields["attachments"] = [a for a in fields.get("attachments") or [] if a.get("id") not in dropped]

    return replace(
        record,
        fields=fields,
        dirty=True,
        new_attachments=staged_new,
        removed_attachments=tuple(staged_removed),
    )


def is_stale(record: Record, snapshot: Dict[str, Any]) -> bool:
    incoming = snapshot.get("revision")
    if incoming is None or record.revision is None:
        return False
    return incoming < record.revision


def apply_broadcast(record: Record, snapshot: Dict[str, Any]) -> Record:
    """
    Merge an externally announced snapshot into a record.

    The snapshot must already be validated (see validate_snapshot). The dirty
    flag is never changed by a merge.
    """
    if record.dirty:
        logger.debug("Dropping broadcast for dirty %s %s", record.kind.value, record.id)
        return record
    if is_stale(record, snapshot):
        logger.debug(
            "Dropping stale broadcast for %s %s (revision %s < %s)",
            record.kind.value, record.id, snapshot.get("revision"), record.revision,
        )
        return record

    fields = dict(record.fields)
    fields.update(snapshot)
    acknowledged = dict(record.acknowledged)
    acknowledged.update(snapshot)
    return replace(
        record,
        fields=fields,
        acknowledged=acknowledged,
        revision=snapshot.get("revision", record.revision),
    )


def apply_reload(record: Record, snapshot: Dict[str, Any]) -> Record:
    """
    Fold a fresh query result into a dirty record.

    Unsaved local values win; everything else, the acknowledged values and
    the revision come from the snapshot. The record stays dirty with its
    staged attachments, so the pending save still goes out.
    """
    if is_stale(record, snapshot):
        return record
    fields = dict(snapshot)
    fields.update(record.pending_patch())
    return replace(
        record,
        fields=fields,
        acknowledged=dict(snapshot),
        revision=snapshot.get("revision", record.revision),
    )


def apply_saved(current: Record, sent: Record, canonical: Dict[str, Any]) -> Record:
    """
    Fold a successful save into the record.

    sent is the record as it was when the save was issued. Fields edited
    again while the save was in flight keep their newer local value and
    leave the record dirty, so another save follows.
    """
    fields = dict(canonical)
    edited_in_flight = {
        name: value
        for name, value in current.fields.items()
        if sent.fields.get(name, _MISSING) != value
    }
    fields.update(edited_in_flight)

    sent_new = len(sent.new_attachments)
    remaining_new = current.new_attachments[sent_new:]
    remaining_removed = tuple(
        a for a in current.removed_attachments if a not in sent.removed_attachments
    )

    return replace(
        current,
        fields=fields,
        acknowledged=dict(canonical),
        revision=canonical.get("revision", current.revision),
        dirty=bool(edited_in_flight or remaining_new or remaining_removed),
        new_attachments=remaining_new,
        removed_attachments=remaining_removed,
    )


# listener(old, new, reason); old is None on insert, new is None on removal
ChangeListener = Callable[[Optional[Record], Optional[Record], str], None]


class RecordStore:
    """
    Reconciled local state for one view: records keyed by (kind, id).

    Every change is reported to listeners with a reason: "loaded", "edit",
    "broadcast", "saved" or "removed".
    """

    def __init__(self):
        self._records: Dict[Tuple[RecordKind, str], Record] = {}
        self._listeners: List[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return remove

    def _notify(self, old: Optional[Record], new: Optional[Record], reason: str) -> None:
        for listener in list(self._listeners):
            listener(old, new, reason)

    def _set(self, record: Record, reason: str) -> Record:
        old = self._records.get(record.key)
        self._records[record.key] = record
        if old is not record:
            self._notify(old, record, reason)
        return record

    def get(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        return self._records.get((kind, str(record_id)))

    def __contains__(self, key: Tuple[RecordKind, str]) -> bool:
        return key in self._records

    def all(self, kind: RecordKind) -> List[Record]:
        return [r for (k, _), r in self._records.items() if k == kind]

    def load(self, kind: RecordKind, payload: Any) -> Record:
        """
        Hold a record returned by a query or a creation. A clean local copy is
        replaced; a dirty one keeps its unsaved edits.
        """
        loaded = record_from_snapshot(kind, payload)
        current = self.get(kind, loaded.id)
        if current is not None and current.dirty:
            return self._set(apply_reload(current, loaded.acknowledged), "loaded")
        return self._set(loaded, "loaded")

    def edit(
        self,
        kind: RecordKind,
        record_id: str,
        patch: Dict[str, Any],
        new_attachments: Iterable[AttachmentMeta] = (),
        removed_attachments: Iterable[str] = (),
    ) -> Record:
        record = self.get(kind, record_id)
        if record is None:
            raise KeyError(f"{kind.value} {record_id} is not held locally")
        return self._set(apply_local_edit(record, patch, new_attachments, removed_attachments), "edit")

    def merge_broadcast(self, kind: RecordKind, payload: Any, insert_missing: bool = False) -> Optional[Record]:
        """
        Merge a broadcast snapshot. A record not held locally is inserted
        when insert_missing (list views), otherwise ignored.
        """
        snapshot = validate_snapshot(kind, payload)
        record = self.get(kind, snapshot["id"])
        if record is None:
            if not insert_missing:
                return None
            return self._set(record_from_snapshot(kind, snapshot), "broadcast")
        return self._set(apply_broadcast(record, snapshot), "broadcast")

    def saved(self, sent: Record, canonical_payload: Any) -> Optional[Record]:
        """Apply a save response; None if the record was discarded meanwhile."""
        current = self.get(sent.kind, sent.id)
        if current is None:
            return None
        canonical = validate_snapshot(sent.kind, canonical_payload)
        return self._set(apply_saved(current, sent, canonical), "saved")

    def remove(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        old = self._records.pop((kind, str(record_id)), None)
        if old is not None:
            self._notify(old, None, "removed")
        return old

    def clear(self) -> None:
        for key in list(self._records):
            self.remove(*key)
