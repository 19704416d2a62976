import asyncio

from app.core.errors import GatewayError
from app.sync.reconciler import RecordStore
from app.sync.records import RecordKind
from app.sync.scheduler import PersistenceScheduler, PersistenceStatus, build_patch
from tests.fakes import FakeGateway, RecordingEmitter

ROW = {"id": "a1", "class_id": "class-1", "title": "Essay", "revision": 1, "attachments": []}


def make_scheduler(gateway=None, on_error=None, debounce=0):
    gateway = gateway or FakeGateway()
    gateway.put(RecordKind.ASSIGNMENT, ROW)
    store = RecordStore()
    store.load(RecordKind.ASSIGNMENT, ROW)
    emitter = RecordingEmitter()
    scheduler = PersistenceScheduler(store, gateway, emitter, debounce=debounce, on_error=on_error)
    return gateway, store, emitter, scheduler


async def until(condition):
    for _ in range(100):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def test_edit_is_saved_and_broadcast():
    async def scenario():
        gateway, store, emitter, scheduler = make_scheduler()

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "X"})
        assert scheduler.status(RecordKind.ASSIGNMENT, "a1") == PersistenceStatus.DIRTY
        await scheduler.wait_idle()

        record = store.get(RecordKind.ASSIGNMENT, "a1")
        assert not record.dirty
        assert record.get("title") == "X"
        assert record.revision == 2
        assert gateway.updates() == [{"title": "X"}]
        assert emitter.saved == [(RecordKind.ASSIGNMENT, dict(ROW, title="X", revision=2))]
        assert scheduler.status(RecordKind.ASSIGNMENT, "a1") == PersistenceStatus.CLEAN

    asyncio.run(scenario())


def test_edits_before_timer_fires_share_one_save():
    async def scenario():
        gateway, store, _, scheduler = make_scheduler()

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "X"})
        store.edit(RecordKind.ASSIGNMENT, "a1", {"weight": 2.0})
        await scheduler.wait_idle()

        assert gateway.updates() == [{"title": "X", "weight": 2.0}]

    asyncio.run(scenario())


def test_edit_during_save_is_saved_afterwards():
    async def scenario():
        gateway, store, _, scheduler = make_scheduler()
        gateway.hold = asyncio.Event()

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "X"})
        await until(lambda: gateway.calls)
        assert scheduler.status(RecordKind.ASSIGNMENT, "a1") == PersistenceStatus.SAVING

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "Z"})
        assert scheduler.status(RecordKind.ASSIGNMENT, "a1") == PersistenceStatus.SAVING
        await asyncio.sleep(0)
        assert len(gateway.updates()) == 1

        gateway.hold.set()
        await scheduler.wait_idle()

        record = store.get(RecordKind.ASSIGNMENT, "a1")
        assert gateway.updates() == [{"title": "X"}, {"title": "Z"}]
        assert record.get("title") == "Z"
        assert record.revision == 3
        assert not record.dirty

    asyncio.run(scenario())


def test_broadcast_during_save_does_not_override_edit():
    async def scenario():
        gateway, store, _, scheduler = make_scheduler()
        gateway.hold = asyncio.Event()

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "X"})
        await until(lambda: gateway.calls)
        store.merge_broadcast(RecordKind.ASSIGNMENT, dict(ROW, title="Y", revision=2))

        assert store.get(RecordKind.ASSIGNMENT, "a1").get("title") == "X"
        gateway.hold.set()
        await scheduler.wait_idle()

    asyncio.run(scenario())


def test_failed_save_stays_dirty_without_retry():
    async def scenario():
        errors = []
        gateway, store, emitter, scheduler = make_scheduler(on_error=lambda record, error: errors.append((record.id, error.message)))
        gateway.fail_with = GatewayError("Title is too long", status_code=422, kind="validation")

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "X" * 500})
        await scheduler.wait_idle()
        await asyncio.sleep(0.01)

        assert len(gateway.updates()) == 1
        assert store.get(RecordKind.ASSIGNMENT, "a1").dirty
        assert scheduler.status(RecordKind.ASSIGNMENT, "a1") == PersistenceStatus.DIRTY
        assert errors == [("a1", "Title is too long")]
        assert emitter.saved == []

        gateway.fail_with = None
        result = await scheduler.save(RecordKind.ASSIGNMENT, "a1")
        assert result.ok
        assert not result.record.dirty
        assert len(gateway.updates()) == 2

    asyncio.run(scenario())


def test_explicit_save_of_clean_record_makes_no_call():
    async def scenario():
        gateway, _, _, scheduler = make_scheduler()

        result = await scheduler.save(RecordKind.ASSIGNMENT, "a1")

        assert result.ok
        assert gateway.updates() == []

    asyncio.run(scenario())


def test_response_for_discarded_record_is_ignored():
    async def scenario():
        gateway, store, emitter, scheduler = make_scheduler()
        gateway.hold = asyncio.Event()

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "X"})
        await until(lambda: gateway.calls)
        store.remove(RecordKind.ASSIGNMENT, "a1")
        gateway.hold.set()
        await scheduler.wait_idle()

        assert store.get(RecordKind.ASSIGNMENT, "a1") is None
        assert emitter.saved == []

    asyncio.run(scenario())


def test_removed_record_cancels_pending_save():
    async def scenario():
        gateway, store, _, scheduler = make_scheduler(debounce=10)

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "X"})
        store.remove(RecordKind.ASSIGNMENT, "a1")
        await scheduler.wait_idle()

        assert gateway.updates() == []

    asyncio.run(scenario())


def test_patch_carries_staged_attachments():
    store = RecordStore()
    store.load(RecordKind.ASSIGNMENT, ROW)
    record = store.edit(
        RecordKind.ASSIGNMENT, "a1", {"title": "X"},
        new_attachments=[{"name": "notes.pdf", "type": "application/pdf", "size": 42}],
    )

    assert build_patch(record) == {
        "title": "X",
        "new_attachments": [{"name": "notes.pdf", "type": "application/pdf", "size": 42}],
        "removed_attachments": [],
    }


def test_close_saves_edits_waiting_for_timer():
    async def scenario():
        gateway, store, emitter, scheduler = make_scheduler(debounce=10)

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "X"})
        await scheduler.close()

        assert gateway.updates() == [{"title": "X"}]
        assert not store.get(RecordKind.ASSIGNMENT, "a1").dirty
        assert len(emitter.saved) == 1

        store.edit(RecordKind.ASSIGNMENT, "a1", {"title": "Z"})
        await scheduler.wait_idle()
        assert len(gateway.updates()) == 1

    asyncio.run(scenario())
