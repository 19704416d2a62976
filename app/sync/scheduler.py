"""
Persistence scheduling for dirty records.

Per record: Clean -> (edit) -> Dirty -> (timer fires) -> Saving -> Clean on
success, or back to Dirty on failure. An edit made while Saving leaves the
record dirty and another save follows the current one; two saves for the
same record are never in flight at once. Failed saves are not retried: the
next edit or an explicit save() schedules again.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from app.core.config import settings
from app.core.errors import GatewayError, SnapshotValidationError
from app.sync.records import Record, RecordKind
from app.sync.reconciler import RecordStore

logger = logging.getLogger(__name__)

# Maintained by the store; never part of an update patch
SERVER_MANAGED = ("attachments", "mark_scheme", "grading_boundary", "created_at", "updated_at", "submitted_at")


class PersistenceStatus(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"


@dataclass
class SaveResult:
    ok: bool
    record: Optional[Record] = None
    error: Optional[GatewayError] = None


Key = Tuple[RecordKind, str]


def build_patch(record: Record) -> Dict[str, Any]:
    patch = {k: v for k, v in record.pending_patch().items() if k not in SERVER_MANAGED}
    if record.has_staged_attachments():
        patch["new_attachments"] = [a.model_dump() for a in record.new_attachments]
        patch["removed_attachments"] = list(record.removed_attachments)
    return patch


class PersistenceScheduler:
    def __init__(
        self,
        store: RecordStore,
        gateway,
        emitter=None,
        debounce: Optional[float] = None,
        on_error: Optional[Callable[[Record, GatewayError], None]] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._emitter = emitter
        self._debounce = settings.SAVE_DEBOUNCE_SECONDS if debounce is None else debounce
        self._on_error = on_error
        self._timers: Dict[Key, asyncio.Task] = {}
        self._saving: Dict[Key, asyncio.Task] = {}
        self._closed = False
        self._unlisten = store.add_listener(self._on_change)

    def status(self, kind: RecordKind, record_id: str) -> PersistenceStatus:
        key = (kind, str(record_id))
        if key in self._saving:
            return PersistenceStatus.SAVING
        record = self._store.get(kind, record_id)
        if record is not None and record.dirty:
            return PersistenceStatus.DIRTY
        return PersistenceStatus.CLEAN

    def _on_change(self, old: Optional[Record], new: Optional[Record], reason: str) -> None:
        if reason == "edit" and new is not None and new.dirty:
            self.schedule(new.kind, new.id)
        elif reason == "removed" and old is not None:
            timer = self._timers.pop(old.key, None)
            if timer is not None:
                timer.cancel()

    def schedule(self, kind: RecordKind, record_id: str) -> None:
        """
        Arrange one save after the debounce delay. A pending timer is restarted;
        while a save is in flight nothing is scheduled, since the record stays
        dirty and the in-flight save re-schedules on completion.
        """
        key = (kind, str(record_id))
        if self._closed or key in self._saving:
            return
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        self._timers[key] = asyncio.ensure_future(self._fire(key))

    async def _fire(self, key: Key) -> None:
        await asyncio.sleep(self._debounce)
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]
        await self._save(key)

    async def save(self, kind: RecordKind, record_id: str) -> SaveResult:
        """Explicit "save changes": skip the debounce and save now."""
        key = (kind, str(record_id))
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        return await self._save(key)

    async def _save(self, key: Key) -> SaveResult:
        while key in self._saving:
            await asyncio.wait([self._saving[key]])

        record = self._store.get(*key)
        if record is None or not record.dirty:
            return SaveResult(ok=True, record=record)

        task = asyncio.ensure_future(self._perform(record))
        self._saving[key] = task
        try:
            result = await task
        finally:
            if self._saving.get(key) is task:
                del self._saving[key]

        if result.ok and result.record is not None and result.record.dirty:
            self.schedule(*key)
        return result

    async def _perform(self, sent: Record) -> SaveResult:
        try:
            canonical = await self._gateway.update(sent.kind, sent.id, build_patch(sent))
            saved = self._store.saved(sent, canonical)
        except SnapshotValidationError as e:
            error = GatewayError(f"Unexpected response from server: {e}", kind="server")
            return self._failed(sent, error)
        except GatewayError as e:
            return self._failed(sent, e)

        if saved is None:
            logger.info("%s %s was discarded while saving; ignoring the response", sent.kind.value, sent.id)
            return SaveResult(ok=True)

        if self._emitter is not None:
            await self._emitter.record_saved(sent.kind, canonical)
        return SaveResult(ok=True, record=saved)

    def _failed(self, sent: Record, error: GatewayError) -> SaveResult:
        logger.warning("Saving %s %s failed: %s", sent.kind.value, sent.id, error.message)
        current = self._store.get(sent.kind, sent.id)
        if current is not None and self._on_error is not None:
            self._on_error(current, error)
        return SaveResult(ok=False, record=current, error=error)

    async def wait_idle(self) -> None:
        """Wait until no save is pending or in flight."""
        while self._timers or self._saving:
            pending = list(self._timers.values()) + list(self._saving.values())
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Stop scheduling. Edits still waiting for their timer are saved now."""
        self._closed = True
        self._unlisten()
        pending = list(self._timers)
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        for key in pending:
            await self._save(key)
