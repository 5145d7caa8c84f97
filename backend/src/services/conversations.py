from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import PersistenceError
from models.message import ChatMessage


@dataclass
class ConversationSummary:
    conversation_id: str
    messages: list[ChatMessage] = field(default_factory=list)
    last_message: str = ""
    timestamp: datetime | None = None
    unread: int = 0


def summarize_conversations(messages: list[ChatMessage]) -> list[ConversationSummary]:
    """Group messages by conversation id.

    Messages must already be sorted ascending by timestamp; the last one seen
    for a conversation supplies ``last_message`` and ``timestamp``.
    Conversations come out in order of first appearance.
    """
    summaries: dict[str, ConversationSummary] = {}
    for msg in messages:
        summary = summaries.get(msg.conversation_id)
        if summary is None:
            summary = ConversationSummary(conversation_id=msg.conversation_id)
            summaries[msg.conversation_id] = summary
        summary.messages.append(msg)
        summary.last_message = msg.text
        summary.timestamp = msg.timestamp
        if not msg.read:
            summary.unread += 1
    return list(summaries.values())


class ConversationAggregator:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_conversations(self) -> list[ConversationSummary]:
        # Full scan on every call, no caching
        stmt = select(ChatMessage).order_by(
            ChatMessage.timestamp.asc(), ChatMessage.created_at.asc()
        )
        try:
            result = await self.db.execute(stmt)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError("Could not aggregate conversations") from e
        return summarize_conversations(list(result.scalars().all()))
