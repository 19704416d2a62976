"""
Broadcast emitter and consumer for record events.

Event names are ``<kind>-created``, ``<kind>-updated`` and ``<kind>-deleted``
(e.g. ``assignment-updated``, ``section-deleted``). Payloads are the same
canonical snapshots the gateway returns; deletions carry the record id.
"""
import logging
from functools import partial
from typing import Any, Callable, Iterable, List, Optional

from app.core.errors import SnapshotValidationError
from app.modules.realtime.hub import AckCallback
from app.sync.channel import Ack, BroadcastChannel
from app.sync.reconciler import RecordStore
from app.sync.records import RecordKind, snapshot_id

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"


def event_name(kind: RecordKind, action: str) -> str:
    return f"{kind.value}-{action}"


class BroadcastEmitter:
    """Re-publishes saved records so other participants converge."""

    def __init__(
        self,
        channel: BroadcastChannel,
        room: str,
        ack_kinds: Iterable[RecordKind] = (RecordKind.SUBMISSION,),
        on_ack: Optional[Callable[[RecordKind, str], Any]] = None,
    ):
        self._channel = channel
        self._room = room
        self._ack_kinds = set(ack_kinds)
        self._on_ack = on_ack

    def _ack_callback(self, kind: RecordKind, record_id: str) -> Optional[AckCallback]:
        if self._on_ack is None or kind not in self._ack_kinds:
            return None
        return partial(self._on_ack, kind, record_id)

    async def record_saved(self, kind: RecordKind, canonical: dict) -> None:
        await self._channel.publish(
            self._room,
            event_name(kind, UPDATED),
            canonical,
            self._ack_callback(kind, str(canonical.get("id"))),
        )

    async def record_created(self, kind: RecordKind, canonical: dict) -> None:
        await self._channel.publish(self._room, event_name(kind, CREATED), canonical)

    async def record_deleted(self, kind: RecordKind, record_id: str) -> None:
        await self._channel.publish(self._room, event_name(kind, DELETED), record_id)


class BroadcastConsumer:
    """
    Feeds a room's record events into a RecordStore.

    Handlers are idempotent: a repeated update merges to the same state, a
    repeated create merges into the already inserted record, and deleting an
    absent record does nothing.
    """

    def __init__(
        self,
        channel: BroadcastChannel,
        store: RecordStore,
        room: str,
        kinds: Iterable[RecordKind] = tuple(RecordKind),
        insert_missing: bool = False,
    ):
        self._channel = channel
        self._store = store
        self._room = room
        self._kinds = tuple(kinds)
        self.insert_missing = insert_missing
        self._unsubscribers: List[Callable[[], None]] = []

    def start(self) -> None:
        for kind in self._kinds:
            self._unsubscribers.append(
                self._channel.subscribe(self._room, event_name(kind, CREATED), partial(self._on_upsert, kind))
            )
            self._unsubscribers.append(
                self._channel.subscribe(self._room, event_name(kind, UPDATED), partial(self._on_upsert, kind))
            )
            self._unsubscribers.append(
                self._channel.subscribe(self._room, event_name(kind, DELETED), partial(self._on_deleted, kind))
            )

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def _on_upsert(self, kind: RecordKind, payload: Any, ack: Optional[Ack]) -> None:
        try:
            self._store.merge_broadcast(kind, payload, insert_missing=self.insert_missing)
        except SnapshotValidationError as e:
            logger.warning("Ignoring malformed %s broadcast: %s", kind.value, e)
        if ack is not None:
            await ack()

    async def _on_deleted(self, kind: RecordKind, payload: Any, ack: Optional[Ack]) -> None:
        record_id = snapshot_id(payload)
        if record_id is None:
            logger.warning("Ignoring %s deletion broadcast without an id", kind.value)
        else:
            self._store.remove(kind, record_id)
        if ack is not None:
            await ack()
