"""
Room-scoped event relay for class participants.

A connection is anything that can take delivered events: a WebSocket
client, or an in-process BroadcastChannel using HubTransport. Events go to
every member of the room except the sender. There is no replay: a
connection that is not in the room when an event is emitted never sees it.
"""
import copy
import inspect
import logging
import uuid
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)

# deliver(room, event, payload, ack_id)
Deliver = Callable[[str, str, Any, Optional[str]], Awaitable[None]]
AckCallback = Callable[[], Any]


class RoomHub:
    def __init__(self):
        self._connections: Dict[str, Deliver] = {}
        self._rooms: Dict[str, Set[str]] = defaultdict(set)
        # ack_id -> (sender connection, callback)
        self._pending_acks: Dict[str, Tuple[Optional[str], AckCallback]] = {}

    def connect(self, deliver: Deliver) -> str:
        connection_id = str(uuid.uuid4())
        self._connections[connection_id] = deliver
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """Drop a connection, its room memberships and the acks it is still waiting for."""
        self._connections.pop(connection_id, None)
        for ack_id in [a for a, (sender, _) in self._pending_acks.items() if sender == connection_id]:
            del self._pending_acks[ack_id]
        for room in list(self._rooms):
            self.leave(connection_id, room)

    def join(self, connection_id: str, room: str) -> None:
        if connection_id not in self._connections:
            raise KeyError(f"Unknown connection {connection_id}")
        self._rooms[room].add(connection_id)

    def leave(self, connection_id: str, room: str) -> None:
        members = self._rooms.get(room)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[room]

    def members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    async def emit(
        self,
        sender_id: Optional[str],
        room: str,
        event: str,
        payload: Any,
        on_ack: Optional[AckCallback] = None,
    ) -> int:
        """
        Deliver an event to the other members of a room.

        on_ack, if given, runs once when the first peer acknowledges.
        Returns the number of peers the event was handed to.
        """
        peers = [cid for cid in self._rooms.get(room, ()) if cid != sender_id]

        ack_id = None
        if on_ack is not None and peers:
            ack_id = str(uuid.uuid4())
            self._pending_acks[ack_id] = (sender_id, on_ack)

        delivered = 0
        for connection_id in peers:
            deliver = self._connections.get(connection_id)
            if deliver is None:
                continue
            try:
                await deliver(room, event, copy.deepcopy(payload), ack_id)
                delivered += 1
            except Exception:
                # One broken peer must not stop delivery to the rest of the room
                logger.exception("Delivering %s to %s in room %s failed", event, connection_id, room)

        if ack_id is not None and delivered == 0:
            self._pending_acks.pop(ack_id, None)
        return delivered

    async def acknowledge(self, ack_id: str) -> bool:
        """Route a peer's acknowledgement to the sender; later acks for the same event are dropped."""
        pending = self._pending_acks.pop(ack_id, None)
        if pending is None:
            return False
        sender_id, callback = pending
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            # The acking peer stays connected even when the sender is gone
            logger.exception("Routing ack %s to %s failed", ack_id, sender_id)
        return True

    def pending_acks(self) -> int:
        return len(self._pending_acks)


hub = RoomHub()


def get_hub() -> RoomHub:
    """Get the process-wide relay instance"""
    return hub
