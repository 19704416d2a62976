"""
Client session for one class room view.

ClassroomSession wires the sync engine together for a single class: a
RecordStore holding the view's records, the PersistenceScheduler saving them,
and the broadcast emitter/consumer pair on the class room. The channel and
gateway are owned by the caller so several views can share one connection.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from app.core.config import settings
from app.core.errors import GatewayError, SnapshotValidationError
from app.grading.adapter import SchemaCache, parse_rubric_state
from app.grading.calculator import summarize_grade
from app.schemas.grading import GradeSummary, GradingBoundary, RubricScheme
from app.sync.alerts import AlertCenter, AlertLevel
from app.sync.broadcast import BroadcastConsumer, BroadcastEmitter
from app.sync.channel import BroadcastChannel
from app.sync.reconciler import RecordStore
from app.sync.records import Record, RecordKind
from app.sync.scheduler import PersistenceScheduler, PersistenceStatus, SaveResult

logger = logging.getLogger(__name__)


class GradeTracker:
    """
    Keeps a computed GradeSummary for every held submission.

    Summaries are recomputed when the submission changes or when its
    assignment's mark scheme or grading boundary changes.
    """

    def __init__(self, store: RecordStore, cache: Optional[SchemaCache] = None, strict: Optional[bool] = None):
        self._store = store
        self._cache = cache or SchemaCache()
        self._strict = settings.GRADING_STRICT if strict is None else strict
        self._summaries: Dict[str, GradeSummary] = {}
        self._unlisten = store.add_listener(self._on_change)

    def summary(self, submission_id: str) -> Optional[GradeSummary]:
        return self._summaries.get(str(submission_id))

    def schemes_for(self, assignment_id: Optional[str]):
        assignment = self._store.get(RecordKind.ASSIGNMENT, assignment_id) if assignment_id else None
        if assignment is None:
            return RubricScheme(), GradingBoundary()

        mark_scheme = assignment.get("mark_scheme") or {}
        rubric = self._cache.rubric(mark_scheme.get("id"), mark_scheme.get("structured"))

        # Without a boundary there is no letter grade, only "N/A"
        grading_boundary = assignment.get("grading_boundary") or {}
        boundary = self._cache.boundary(grading_boundary.get("id"), grading_boundary.get("structured"))
        return rubric, boundary

    def recompute(self, submission_id: str) -> Optional[GradeSummary]:
        submission = self._store.get(RecordKind.SUBMISSION, submission_id)
        if submission is None:
            self._summaries.pop(str(submission_id), None)
            return None
        rubric, boundary = self.schemes_for(submission.get("assignment_id"))
        grade = parse_rubric_state(submission.get("rubric_state"))
        summary = summarize_grade(grade, rubric, boundary, strict=self._strict)
        self._summaries[submission.id] = summary
        return summary

    def _on_change(self, old: Optional[Record], new: Optional[Record], reason: str) -> None:
        record = new or old
        if record.kind == RecordKind.SUBMISSION:
            if new is None:
                self._summaries.pop(record.id, None)
            else:
                self.recompute(record.id)
        elif record.kind == RecordKind.ASSIGNMENT:
            for submission in self._store.all(RecordKind.SUBMISSION):
                if submission.get("assignment_id") == record.id:
                    self.recompute(submission.id)

    def close(self) -> None:
        self._unlisten()


class ClassroomSession:
    def __init__(
        self,
        class_id: str,
        gateway,
        channel: BroadcastChannel,
        store: Optional[RecordStore] = None,
        alerts: Optional[AlertCenter] = None,
        debounce: Optional[float] = None,
        insert_missing: bool = True,
        strict: Optional[bool] = None,
    ):
        self.class_id = class_id
        self.gateway = gateway
        self.channel = channel
        self.store = store or RecordStore()
        self.alerts = alerts or AlertCenter()
        self.acknowledged: List[str] = []

        self.emitter = BroadcastEmitter(channel, class_id, on_ack=self._on_ack)
        self.consumer = BroadcastConsumer(channel, self.store, class_id, insert_missing=insert_missing)
        self.scheduler = PersistenceScheduler(
            self.store, gateway, self.emitter, debounce=debounce, on_error=self._on_save_error,
        )
        self.grades = GradeTracker(self.store, strict=strict)

    async def open(self) -> None:
        """Connect (once), join the class room and start consuming its events."""
        await self.channel.connect()
        await self.channel.join(self.class_id)
        self.consumer.start()

    async def close(self) -> None:
        """
        Leave the room. Edits still waiting to be saved are saved first; saves
        already in flight complete, and their responses are ignored once the
        records are cleared.
        """
        self.consumer.stop()
        await self.scheduler.close()
        self.grades.close()
        await self.channel.leave(self.class_id)
        self.store.clear()

    def _on_save_error(self, record: Record, error: GatewayError) -> None:
        self.alerts.error(f"Could not save {record.kind.value}: {error.message}")

    def _on_ack(self, kind: RecordKind, record_id: str) -> None:
        logger.debug("%s %s update was received by a peer", kind.value, record_id)
        self.acknowledged.append(record_id)

    def _report(self, action: str, kind: RecordKind, error: Exception) -> None:
        message = error.message if isinstance(error, GatewayError) else str(error)
        logger.warning("Could not %s %s: %s", action, kind.value, message)
        self.alerts.error(f"Could not {action} {kind.value}: {message}")

    async def load(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        try:
            payload = await self.gateway.get(kind, record_id)
            return self.store.load(kind, payload)
        except (GatewayError, SnapshotValidationError) as e:
            self._report("load", kind, e)
            return None

    async def _load_list(self, kind: RecordKind, action: str, key: str) -> List[Record]:
        try:
            payloads = await self.gateway.call(kind.value, action, key)
            return [self.store.load(kind, payload) for payload in payloads or []]
        except (GatewayError, SnapshotValidationError) as e:
            self._report("load", kind, e)
            return []

    async def load_assignments(self) -> List[Record]:
        return await self._load_list(RecordKind.ASSIGNMENT, "listByClass", self.class_id)

    async def load_submissions(self, assignment_id: str) -> List[Record]:
        return await self._load_list(RecordKind.SUBMISSION, "listByAssignment", assignment_id)

    def edit(
        self,
        kind: RecordKind,
        record_id: str,
        patch: Dict[str, Any],
        new_attachments: Iterable[Any] = (),
        removed_attachments: Iterable[str] = (),
    ) -> Record:
        return self.store.edit(kind, record_id, patch, new_attachments, removed_attachments)

    def status(self, kind: RecordKind, record_id: str) -> PersistenceStatus:
        return self.scheduler.status(kind, record_id)

    async def save_changes(self, kind: RecordKind, record_id: str) -> SaveResult:
        result = await self.scheduler.save(kind, record_id)
        if result.ok and result.record is not None:
            self.alerts.add(AlertLevel.SUCCESS, f"{kind.value.capitalize()} saved")
        return result

    async def create(self, kind: RecordKind, data: Dict[str, Any]) -> Optional[Record]:
        try:
            canonical = await self.gateway.create(kind, data)
            record = self.store.load(kind, canonical)
        except (GatewayError, SnapshotValidationError) as e:
            self._report("create", kind, e)
            return None
        await self.emitter.record_created(kind, canonical)
        return record

    async def delete(self, kind: RecordKind, record_id: str) -> bool:
        try:
            await self.gateway.delete(kind, record_id)
        except GatewayError as e:
            self._report("delete", kind, e)
            return False
        self.store.remove(kind, record_id)
        await self.emitter.record_deleted(kind, record_id)
        return True

    async def attach_assignment(self, event_id: str, assignment_id: str) -> Optional[Record]:
        try:
            canonical = await self.gateway.call(
                RecordKind.EVENT.value, "attachAssignment", event_id, {"assignment_id": assignment_id},
            )
            record = self.store.load(RecordKind.EVENT, canonical)
        except (GatewayError, SnapshotValidationError) as e:
            self._report("update", RecordKind.EVENT, e)
            return None
        await self.emitter.record_saved(RecordKind.EVENT, canonical)
        return record

    def grade(self, submission_id: str) -> Optional[GradeSummary]:
        return self.grades.summary(submission_id)
