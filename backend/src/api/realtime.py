import logging

from fastapi import APIRouter, Depends, WebSocket

from api.dependencies import get_channel
from realtime.channel import ERROR, FanoutChannel
from realtime.handlers import handle_frame

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    channel: FanoutChannel = Depends(get_channel),
):
    connection_id = await channel.connect(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug("Socket %s closed with code %s", connection_id, message.get("code"))
                break
            raw = message.get("text")
            if raw is None:
                await channel.send(connection_id, ERROR, {"detail": "Binary frames are not supported"})
                continue
            await handle_frame(channel, connection_id, raw)
    finally:
        await channel.disconnect(connection_id)
