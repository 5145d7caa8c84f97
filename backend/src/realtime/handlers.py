import logging
from typing import Any

from pydantic import ValidationError

from realtime.channel import ERROR, FanoutChannel
from realtime.events import JoinEvent, RelayedMessage, TypingEvent, WsInbound

logger = logging.getLogger(__name__)


async def on_join(channel: FanoutChannel, connection_id: str, data: dict[str, Any]) -> None:
    event = JoinEvent.model_validate(data)
    await channel.join(connection_id, event.user_type, event.user_id)


async def on_typing(channel: FanoutChannel, connection_id: str, data: dict[str, Any]) -> None:
    event = TypingEvent.model_validate(data)
    fields = event.model_dump(by_alias=True, exclude_unset=True)
    if not await channel.typing(connection_id, fields):
        logger.debug("Dropped typing from unjoined connection %s", connection_id)


async def on_relayed_message(channel: FanoutChannel, connection_id: str, data: dict[str, Any]) -> None:
    message = RelayedMessage.model_validate(data)
    logger.info("%s message relayed from %s", message.sender.capitalize(), connection_id)
    await channel.relay(message.model_dump(mode="json", by_alias=True, exclude_unset=True))


HANDLERS = {
    "join": on_join,
    "typing": on_typing,
    "instructor-message": on_relayed_message,
    "student-message": on_relayed_message,
}


def _describe(error: ValidationError) -> list[dict]:
    return [{"loc": list(err["loc"]), "msg": err["msg"]} for err in error.errors()]


async def handle_frame(channel: FanoutChannel, connection_id: str, raw: str) -> None:
    """Validate one client frame and run its handler.

    Bad frames are answered with an ``error`` event to the sender only.
    """
    try:
        frame = WsInbound.model_validate_json(raw)
    except ValidationError as e:
        await channel.send(connection_id, ERROR, {"detail": "Malformed frame", "errors": _describe(e)})
        return

    handler = HANDLERS.get(frame.event)
    if not handler:
        await channel.send(connection_id, ERROR, {"detail": f"Unknown event: {frame.event}"})
        return

    try:
        await handler(channel, connection_id, frame.data)
    except ValidationError as e:
        logger.info("Rejected %s from %s: %s", frame.event, connection_id, e.error_count())
        await channel.send(
            connection_id,
            ERROR,
            {"detail": f"Invalid {frame.event} payload", "errors": _describe(e)},
        )
