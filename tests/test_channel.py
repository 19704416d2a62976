import asyncio

import pytest

from app.modules.realtime.hub import RoomHub
from app.sync.channel import BroadcastChannel, HubTransport


async def connected(hub, *rooms):
    channel = BroadcastChannel(HubTransport(hub))
    await channel.connect()
    for room in rooms:
        await channel.join(room)
    return channel


def test_publish_reaches_peers_but_not_sender():
    async def scenario():
        hub = RoomHub()
        alice = await connected(hub, "class-1")
        bob = await connected(hub, "class-1")
        outsider = await connected(hub, "class-2")
        received = {"alice": [], "bob": [], "outsider": []}
        alice.subscribe("class-1", "section-updated", lambda p, ack: received["alice"].append(p))
        bob.subscribe("class-1", "section-updated", lambda p, ack: received["bob"].append(p))
        outsider.subscribe("class-2", "section-updated", lambda p, ack: received["outsider"].append(p))

        await alice.publish("class-1", "section-updated", {"id": "s1", "name": "Unit 1"})

        assert received == {"alice": [], "bob": [{"id": "s1", "name": "Unit 1"}], "outsider": []}

    asyncio.run(scenario())


def test_subscriptions_are_deduplicated():
    async def scenario():
        hub = RoomHub()
        alice = await connected(hub, "class-1")
        bob = await connected(hub, "class-1")
        first, second = [], []
        bob.subscribe("class-1", "event-created", lambda p, ack: first.append(p))
        bob.subscribe("class-1", "event-created", lambda p, ack: second.append(p))

        await alice.publish("class-1", "event-created", {"id": "e1"})

        assert first == []
        assert second == [{"id": "e1"}]

    asyncio.run(scenario())


def test_unsubscribe_stops_delivery():
    async def scenario():
        hub = RoomHub()
        alice = await connected(hub, "class-1")
        bob = await connected(hub, "class-1")
        seen = []
        unsubscribe = bob.subscribe("class-1", "event-created", lambda p, ack: seen.append(p))

        unsubscribe()
        await alice.publish("class-1", "event-created", {"id": "e1"})

        assert seen == []
        assert not bob.subscribed("class-1", "event-created")

    asyncio.run(scenario())


def test_missed_events_are_not_replayed():
    async def scenario():
        hub = RoomHub()
        alice = await connected(hub, "class-1")
        bob = await connected(hub, "class-1")
        seen = []
        bob.subscribe("class-1", "assignment-updated", lambda p, ack: seen.append(p["title"]))

        await bob.leave("class-1")
        await alice.publish("class-1", "assignment-updated", {"id": "a1", "title": "missed"})
        await bob.join("class-1")
        bob.subscribe("class-1", "assignment-updated", lambda p, ack: seen.append(p["title"]))
        await alice.publish("class-1", "assignment-updated", {"id": "a1", "title": "live"})

        assert seen == ["live"]
        assert bob.rooms == {"class-1"}

    asyncio.run(scenario())


def test_first_ack_reaches_sender_once():
    async def scenario():
        hub = RoomHub()
        alice = await connected(hub, "class-1")
        peers = [await connected(hub, "class-1") for _ in range(2)]
        acks = []

        async def handler(payload, ack):
            await ack()
            await ack()

        for peer in peers:
            peer.subscribe("class-1", "submission-updated", handler)

        await alice.publish("class-1", "submission-updated", {"id": "s1"}, on_ack=lambda: acks.append("s1"))

        assert acks == ["s1"]

    asyncio.run(scenario())


def test_payloads_are_copied_per_peer():
    async def scenario():
        hub = RoomHub()
        alice = await connected(hub, "class-1")
        bob = await connected(hub, "class-1")
        carol = await connected(hub, "class-1")
        seen = []

        def mutate(payload, ack):
            payload["title"] = "changed"

        bob.subscribe("class-1", "assignment-updated", mutate)
        carol.subscribe("class-1", "assignment-updated", lambda p, ack: seen.append(p["title"]))
        payload = {"id": "a1", "title": "original"}

        await alice.publish("class-1", "assignment-updated", payload)

        assert payload["title"] == "original"
        assert seen == ["original"]

    asyncio.run(scenario())


def test_failing_handler_does_not_break_delivery():
    async def scenario():
        hub = RoomHub()
        alice = await connected(hub, "class-1")
        bob = await connected(hub, "class-1")
        carol = await connected(hub, "class-1")
        seen = []

        def explode(payload, ack):
            raise RuntimeError("boom")

        bob.subscribe("class-1", "section-deleted", explode)
        carol.subscribe("class-1", "section-deleted", lambda p, ack: seen.append(p))

        await alice.publish("class-1", "section-deleted", "s1")

        assert seen == ["s1"]

    asyncio.run(scenario())


def test_connection_lifecycle():
    async def scenario():
        hub = RoomHub()
        channel = BroadcastChannel(HubTransport(hub))

        with pytest.raises(RuntimeError):
            await channel.join("class-1")
        await channel.publish("class-1", "section-updated", {"id": "s1"})

        await channel.connect()
        await channel.connect()
        await channel.join("class-1")
        assert len(hub.members("class-1")) == 1

        await channel.disconnect()
        assert not channel.connected
        assert hub.members("class-1") == set()

    asyncio.run(scenario())


def test_sender_disconnect_drops_its_pending_acks():
    async def scenario():
        hub = RoomHub()
        alice = await connected(hub, "class-1")
        bob = await connected(hub, "class-1")
        bob.subscribe("class-1", "submission-updated", lambda p, ack: None)

        for _ in range(3):
            await alice.publish("class-1", "submission-updated", {"id": "s1"}, on_ack=lambda: None)
        await bob.publish("class-1", "submission-updated", {"id": "s2"}, on_ack=lambda: None)
        assert hub.pending_acks() == 4

        await alice.disconnect()

        assert hub.pending_acks() == 1

    asyncio.run(scenario())


def test_failing_ack_callback_does_not_reach_acking_peer():
    async def scenario():
        hub = RoomHub()
        ack_ids = []

        async def deliver(room, event, payload, ack_id):
            ack_ids.append(ack_id)

        def sender_gone():
            raise RuntimeError("socket closed")

        sender = hub.connect(deliver)
        peer = hub.connect(deliver)
        hub.join(sender, "class-1")
        hub.join(peer, "class-1")
        await hub.emit(sender, "class-1", "submission-updated", {"id": "s1"}, sender_gone)

        assert await hub.acknowledge(ack_ids[0])
        assert not await hub.acknowledge(ack_ids[0])
        assert hub.pending_acks() == 0

    asyncio.run(scenario())
