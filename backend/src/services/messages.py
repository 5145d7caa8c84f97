import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import PersistenceError
from models.message import ChatMessage

logger = logging.getLogger(__name__)


class MessageStore:
    """Append-only access to chat messages."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        conversation_id: str,
        sender: str,
        text: str | None = None,
        image: str | None = None,
        sender_user_id: str | None = None,
    ) -> ChatMessage:
        msg = ChatMessage(
            id=uuid.uuid4(),
            conversation_id=conversation_id,
            sender=sender,
            sender_user_id=sender_user_id,
            text=text or "",
            image=image,
            timestamp=datetime.now(timezone.utc),
            read=False,
        )
        try:
            self.db.add(msg)
            await self.db.commit()
            await self.db.refresh(msg)
        except (SQLAlchemyError, OSError) as e:
            await self.db.rollback()
            raise PersistenceError(f"Could not store message in {conversation_id}") from e

        logger.info("Stored message %s in %s from %s", msg.id, conversation_id, sender)
        return msg

    async def list_by_conversation(self, conversation_id: str) -> list[ChatMessage]:
        # Unpaginated: a long-lived conversation is returned whole
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.conversation_id == conversation_id)
            .order_by(ChatMessage.timestamp.asc(), ChatMessage.created_at.asc())
        )
        return await self._fetch(stmt)

    async def list_recent(self, limit: int) -> list[ChatMessage]:
        stmt = (
            select(ChatMessage)
            .order_by(ChatMessage.timestamp.desc(), ChatMessage.created_at.desc())
            .limit(limit)
        )
        rows = await self._fetch(stmt)
        rows.reverse()
        return rows

    async def _fetch(self, stmt) -> list[ChatMessage]:
        try:
            result = await self.db.execute(stmt)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError("Could not read messages") from e
        return list(result.scalars().all())
