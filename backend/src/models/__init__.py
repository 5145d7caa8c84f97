from models.base import Base
from models.message import SENDER_ROLES, ChatMessage

__all__ = ["Base", "ChatMessage", "SENDER_ROLES"]
