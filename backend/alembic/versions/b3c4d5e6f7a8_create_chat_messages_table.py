"""create chat_messages table

Revision ID: b3c4d5e6f7a8
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "b3c4d5e6f7a8"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("conversation_id", sa.String(100), nullable=False),
        sa.Column("sender", sa.String(20), nullable=False),
        sa.Column("sender_user_id", sa.String(100), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("image", sa.String(500), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint(
            "sender IN ('student', 'instructor')", name="ck_chat_messages_sender"
        ),
    )
    op.create_index(
        "ix_chat_messages_conversation_timestamp",
        "chat_messages",
        ["conversation_id", "timestamp"],
    )
    op.create_index("ix_chat_messages_timestamp", "chat_messages", ["timestamp"])


def downgrade() -> None:
    op.drop_index("ix_chat_messages_timestamp", table_name="chat_messages")
    op.drop_index("ix_chat_messages_conversation_timestamp", table_name="chat_messages")
    op.drop_table("chat_messages")
