from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base

SENDER_ROLES = ("student", "instructor")


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    conversation_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sender: Mapped[str] = mapped_column(String(20), nullable=False)
    sender_user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Nothing flips this yet; unread counts equal message counts
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(f"sender IN {SENDER_ROLES!r}", name="ck_chat_messages_sender"),
        Index("ix_chat_messages_conversation_timestamp", "conversation_id", "timestamp"),
        Index("ix_chat_messages_timestamp", "timestamp"),
    )
