"""Seed script to populate the database with sample chat messages."""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend" / "src"))

from core.database import engine, get_db  # noqa: E402
from models import Base  # noqa: E402
from services.messages import MessageStore  # noqa: E402

SAMPLE_MESSAGES = [
    ("course-bicycle", "student", "student_marie", "How is the chainring attached to the crank?"),
    ("course-bicycle", "instructor", "instructor_paul", "Through the spider, with five bolts."),
    ("course-bicycle", "student", "student_marie", "Thanks!"),
    ("course-gearbox", "student", "student_lucas", "Which gear ratio does the model use?"),
    ("direct-messaging", "instructor", "instructor_paul", "Office hours moved to Friday."),
]


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with get_db() as db:
        store = MessageStore(db)
        for conversation_id, sender, user_id, text in SAMPLE_MESSAGES:
            await store.append(
                conversation_id=conversation_id,
                sender=sender,
                text=text,
                sender_user_id=user_id,
            )

    conversations = {conversation_id for conversation_id, *_ in SAMPLE_MESSAGES}
    print("Database seeded with sample data!")
    print(f"  {len(SAMPLE_MESSAGES)} messages")
    print(f"  {len(conversations)} conversations")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
