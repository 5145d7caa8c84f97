import logging
import secrets
import time
import uuid
from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi import Path as PathParam
from pydantic import AliasChoices, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from api.dependencies import get_channel
from config import settings
from core.database import get_db
from core.errors import PersistenceError
from core.schemas import CamelModel
from realtime.channel import NEW_MESSAGE, FanoutChannel
from realtime.events import Role
from services.conversations import ConversationAggregator
from services.messages import MessageStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/messages", tags=["messages"])

# Column sizes of chat_messages
CONVERSATION_ID_MAX = 100
USER_ID_MAX = 100
IMAGE_URL_MAX = 500

# Raster formats only; the stored suffix comes from here, never from the client
IMAGE_SUFFIXES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class MessageOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    conversation_id: str
    sender: str
    sender_user_id: str | None = None
    text: str = ""
    image: str | None = None
    timestamp: datetime
    read: bool = False
    created_at: datetime | None = None


class ConversationSummaryOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    conversation_id: str
    messages: list[MessageOut]
    last_message: str
    timestamp: datetime | None
    unread: int


class SendMessageRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    conversation_id: str | None = Field(default=None, max_length=CONVERSATION_ID_MAX)
    sender: Role
    text: str = ""
    image: str | None = Field(default=None, max_length=IMAGE_URL_MAX)
    sender_user_id: str | None = Field(
        default=None,
        max_length=USER_ID_MAX,
        validation_alias=AliasChoices("senderUserId", "sender_user_id", "userId"),
    )


class UploadResult(CamelModel):
    url: str


@router.post("/upload", response_model=UploadResult)
async def upload_image(image: UploadFile | None = File(None)):
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="No image file provided")
    suffix = IMAGE_SUFFIXES.get(image.content_type or "")
    if suffix is None:
        raise HTTPException(status_code=400, detail="Only PNG, JPEG, GIF or WebP images are allowed")

    data = await image.read(settings.MAX_IMAGE_BYTES + 1)
    if not data:
        raise HTTPException(status_code=400, detail="No image file provided")
    if len(data) > settings.MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Image exceeds size limit")

    filename = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"
    target_dir = Path(settings.UPLOAD_DIR) / "messages"
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        await run_in_threadpool((target_dir / filename).write_bytes, data)
    except OSError:
        logger.exception("Image upload error")
        raise HTTPException(status_code=500, detail="Failed to upload image")

    logger.info("Stored image %s (%d bytes)", filename, len(data))
    return UploadResult(url=f"/uploads/messages/{filename}")


@router.get("", response_model=list[MessageOut])
async def recent_messages():
    try:
        async with get_db() as db:
            rows = await MessageStore(db).list_recent(settings.RECENT_MESSAGES_LIMIT)
    except PersistenceError:
        logger.exception("Error fetching messages")
        raise HTTPException(status_code=500, detail="Failed to fetch messages")
    return [MessageOut.model_validate(row) for row in rows]


@router.get("/conversations/all", response_model=list[ConversationSummaryOut])
async def all_conversations():
    try:
        async with get_db() as db:
            summaries = await ConversationAggregator(db).list_conversations()
    except PersistenceError:
        logger.exception("Error fetching conversations")
        raise HTTPException(status_code=500, detail="Failed to fetch conversations")
    return [ConversationSummaryOut.model_validate(s) for s in summaries]


@router.get("/{conversation_id}", response_model=list[MessageOut])
async def conversation_messages(conversation_id: str):
    try:
        async with get_db() as db:
            rows = await MessageStore(db).list_by_conversation(conversation_id)
    except PersistenceError:
        logger.exception("Error fetching messages for %s", conversation_id)
        raise HTTPException(status_code=500, detail="Failed to fetch messages")
    return [MessageOut.model_validate(row) for row in rows]


@router.post("", status_code=201, response_model=MessageOut)
async def send_direct_message(
    body: SendMessageRequest,
    channel: FanoutChannel = Depends(get_channel),
):
    return await _send(body, body.conversation_id, channel)


@router.post("/{conversation_id}", status_code=201, response_model=MessageOut)
async def send_message(
    body: SendMessageRequest,
    conversation_id: str = PathParam(max_length=CONVERSATION_ID_MAX),
    channel: FanoutChannel = Depends(get_channel),
):
    return await _send(body, conversation_id, channel)


async def _send(
    body: SendMessageRequest,
    conversation_id: str | None,
    channel: FanoutChannel,
) -> MessageOut:
    conversation_id = conversation_id or settings.DIRECT_CONVERSATION_ID
    try:
        async with get_db() as db:
            msg = await MessageStore(db).append(
                conversation_id=conversation_id,
                sender=body.sender,
                text=body.text,
                image=body.image,
                sender_user_id=body.sender_user_id,
            )
    except PersistenceError:
        logger.exception("Error saving message")
        raise HTTPException(status_code=500, detail="Failed to save message")

    result = MessageOut.model_validate(msg)
    # Only after the commit; delivery failures stay inside the channel
    await channel.publish(NEW_MESSAGE, result.model_dump(mode="json", by_alias=True))
    return result
