from pydantic import BaseModel
from typing import Any, Literal, Optional


class ClientMessage(BaseModel):
    """A frame sent by a WebSocket client to the relay."""
    type: Literal["join", "leave", "emit", "ack"]
    room: Optional[str] = None
    event: Optional[str] = None
    payload: Any = None
    ack_id: Optional[str] = None


class ServerMessage(BaseModel):
    """A frame sent by the relay to a WebSocket client."""
    type: Literal["joined", "left", "event", "ack", "error"]
    room: Optional[str] = None
    event: Optional[str] = None
    payload: Any = None
    ack_id: Optional[str] = None
    detail: Optional[str] = None
