import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from app.modules.realtime.hub import RoomHub, get_hub
from app.schemas.realtime import ClientMessage, ServerMessage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


async def _send(websocket: WebSocket, message: ServerMessage) -> None:
    await websocket.send_json(message.model_dump(exclude_none=True))


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, hub: RoomHub = Depends(get_hub)):
    """
    Class room relay.

    Client frames: join / leave {room}, emit {room, event, payload, ack_id?},
    ack {ack_id}. An emit carrying ack_id is answered with an ack frame once
    a peer acknowledges it.
    """
    await websocket.accept()

    async def deliver(room, event, payload, ack_id):
        await _send(websocket, ServerMessage(type="event", room=room, event=event, payload=payload, ack_id=ack_id))

    connection_id = hub.connect(deliver)
    try:
        while True:
            data = await websocket.receive_json()
            try:
                message = ClientMessage.model_validate(data)
            except ValidationError as e:
                await _send(websocket, ServerMessage(type="error", detail=str(e)))
                continue

            if message.type in ("join", "leave", "emit") and not message.room:
                await _send(websocket, ServerMessage(type="error", detail="room is required"))
                continue
            if message.type == "emit" and not message.event:
                await _send(websocket, ServerMessage(type="error", detail="event is required"))
                continue

            if message.type == "join":
                hub.join(connection_id, message.room)
                await _send(websocket, ServerMessage(type="joined", room=message.room))
            elif message.type == "leave":
                hub.leave(connection_id, message.room)
                await _send(websocket, ServerMessage(type="left", room=message.room))
            elif message.type == "emit":
                on_ack = None
                if message.ack_id:
                    client_ack_id = message.ack_id

                    async def on_ack():
                        await _send(websocket, ServerMessage(type="ack", ack_id=client_ack_id))

                await hub.emit(connection_id, message.room, message.event, message.payload, on_ack)
            elif message.type == "ack" and message.ack_id:
                await hub.acknowledge(message.ack_id)
    except WebSocketDisconnect:
        logger.debug("Realtime connection %s closed", connection_id)
    finally:
        hub.disconnect(connection_id)
