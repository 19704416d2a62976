"""
Client side of the class room broadcast channel.

BroadcastChannel is owned explicitly (one per client session) and passed to
whatever needs it, so tests can hand in a channel over a private RoomHub.
Delivery is best effort: no replay for rooms the client was not in, and no
ordering across senders.
"""
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

from app.modules.realtime.hub import AckCallback, RoomHub

logger = logging.getLogger(__name__)

Ack = Callable[[], Awaitable[None]]
# handler(payload, ack); ack is None unless the sender asked for confirmation
Handler = Callable[[Any, Optional[Ack]], Any]
OnEvent = Callable[[str, str, Any, Optional[str]], Awaitable[None]]


class HubTransport:
    """Transport that attaches directly to an in-process RoomHub."""

    def __init__(self, hub: RoomHub):
        self._hub = hub
        self._connection_id: Optional[str] = None

    async def open(self, on_event: OnEvent) -> None:
        self._connection_id = self._hub.connect(on_event)

    async def close(self) -> None:
        if self._connection_id is not None:
            self._hub.disconnect(self._connection_id)
            self._connection_id = None

    async def join(self, room: str) -> None:
        self._hub.join(self._connection_id, room)

    async def leave(self, room: str) -> None:
        self._hub.leave(self._connection_id, room)

    async def emit(self, room: str, event: str, payload: Any, on_ack: Optional[AckCallback] = None) -> None:
        await self._hub.emit(self._connection_id, room, event, payload, on_ack)

    async def acknowledge(self, ack_id: str) -> None:
        await self._hub.acknowledge(ack_id)


class BroadcastChannel:
    def __init__(self, transport):
        self._transport = transport
        self._connected = False
        self._rooms: Set[str] = set()
        self._handlers: Dict[Tuple[str, str], Handler] = {}

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def rooms(self) -> Set[str]:
        return set(self._rooms)

    async def connect(self) -> None:
        if self._connected:
            return
        await self._transport.open(self._dispatch)
        self._connected = True

    async def disconnect(self) -> None:
        if not self._connected:
            return
        await self._transport.close()
        self._connected = False
        self._rooms.clear()
        self._handlers.clear()

    async def join(self, room: str) -> None:
        if not self._connected:
            raise RuntimeError("Broadcast channel is not connected")
        if room in self._rooms:
            return
        await self._transport.join(room)
        self._rooms.add(room)

    async def leave(self, room: str) -> None:
        """Leave a room and drop its subscriptions; missed events are not replayed."""
        if room not in self._rooms:
            return
        self._rooms.discard(room)
        for key in [k for k in self._handlers if k[0] == room]:
            del self._handlers[key]
        if self._connected:
            await self._transport.leave(room)

    def subscribe(self, room: str, event: str, handler: Handler) -> Callable[[], None]:
        """
        Register the handler for (room, event).

        There is at most one handler per pair: subscribing again replaces the
        previous one, so redundant registrations never double-handle an event.
        """
        if (room, event) in self._handlers:
            logger.debug("Replacing handler for %s in room %s", event, room)
        self._handlers[(room, event)] = handler

        def unsubscribe():
            if self._handlers.get((room, event)) is handler:
                del self._handlers[(room, event)]
        return unsubscribe

    def subscribed(self, room: str, event: str) -> bool:
        return (room, event) in self._handlers

    async def publish(self, room: str, event: str, payload: Any, on_ack: Optional[AckCallback] = None) -> None:
        """Fire-and-forget emit; failures are logged, never raised."""
        if not self._connected:
            logger.warning("Dropping %s for room %s: channel not connected", event, room)
            return
        try:
            await self._transport.emit(room, event, payload, on_ack)
        except Exception:
            logger.exception("Publishing %s to room %s failed", event, room)

    async def _dispatch(self, room: str, event: str, payload: Any, ack_id: Optional[str]) -> None:
        if room not in self._rooms:
            return
        handler = self._handlers.get((room, event))
        if handler is None:
            return

        ack = None
        if ack_id is not None:
            async def ack():
                await self._transport.acknowledge(ack_id)

        try:
            result = handler(payload, ack)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Handler for %s in room %s failed", event, room)
