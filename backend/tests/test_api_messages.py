import uuid
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_channel
from config import settings
from core.errors import PersistenceError
from main import app
from models.message import ChatMessage
from services.conversations import ConversationSummary


@pytest.fixture
def channel():
    channel = AsyncMock()
    app.dependency_overrides[get_channel] = lambda: channel
    yield channel
    app.dependency_overrides.pop(get_channel, None)


@pytest.fixture
def client(channel):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def mock_get_db():
    with patch("api.messages.get_db") as mock_get_db:
        mock_db = AsyncMock()
        mock_get_db.return_value.__aenter__ = AsyncMock(return_value=mock_db)
        mock_get_db.return_value.__aexit__ = AsyncMock(return_value=False)
        yield mock_get_db


def _stored(conversation_id="course-1", text="Hi", **kwargs) -> ChatMessage:
    now = datetime.now(timezone.utc)
    return ChatMessage(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender=kwargs.get("sender", "student"),
        sender_user_id=kwargs.get("sender_user_id"),
        text=text,
        image=kwargs.get("image"),
        timestamp=now,
        read=False,
        created_at=now,
    )


@patch("api.messages.MessageStore")
def test_send_message_persists_and_broadcasts(mock_store_cls, mock_get_db, client, channel):
    stored = _stored()
    mock_store = AsyncMock()
    mock_store.append.return_value = stored
    mock_store_cls.return_value = mock_store

    resp = client.post("/api/messages/course-1", json={"sender": "student", "text": "Hi"})

    assert resp.status_code == 201
    body = resp.json()
    assert body["conversationId"] == "course-1"
    assert body["text"] == "Hi"
    assert body["read"] is False
    assert body["id"] == str(stored.id)
    mock_store.append.assert_awaited_once_with(
        conversation_id="course-1",
        sender="student",
        text="Hi",
        image=None,
        sender_user_id=None,
    )
    channel.publish.assert_awaited_once_with("new-message", body)


@patch("api.messages.MessageStore")
def test_send_without_conversation_uses_direct_messaging(mock_store_cls, mock_get_db, client):
    mock_store = AsyncMock()
    mock_store.append.return_value = _stored(conversation_id="direct-messaging")
    mock_store_cls.return_value = mock_store

    resp = client.post("/api/messages", json={"sender": "instructor", "text": "Hello", "userId": "i1"})

    assert resp.status_code == 201
    kwargs = mock_store.append.await_args.kwargs
    assert kwargs["conversation_id"] == "direct-messaging"
    assert kwargs["sender_user_id"] == "i1"


@patch("api.messages.MessageStore")
def test_send_uses_body_conversation_when_path_missing(mock_store_cls, mock_get_db, client):
    mock_store = AsyncMock()
    mock_store.append.return_value = _stored(conversation_id="course-9")
    mock_store_cls.return_value = mock_store

    resp = client.post("/api/messages", json={"conversationId": "course-9", "sender": "student"})

    assert resp.status_code == 201
    assert mock_store.append.await_args.kwargs["conversation_id"] == "course-9"


@patch("api.messages.MessageStore")
def test_send_failure_is_500_and_not_broadcast(mock_store_cls, mock_get_db, client, channel):
    mock_store = AsyncMock()
    mock_store.append.side_effect = PersistenceError("db down")
    mock_store_cls.return_value = mock_store

    resp = client.post("/api/messages/course-1", json={"sender": "student", "text": "Hi"})

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to save message"
    channel.publish.assert_not_awaited()


@patch("api.messages.MessageStore")
@pytest.mark.parametrize(
    "payload",
    [
        {"text": "no sender"},
        {"sender": "admin", "text": "bad role"},
        {"sender": "student", "text": "Hi", "priority": "high"},
    ],
)
def test_send_rejects_invalid_body(mock_store_cls, payload, mock_get_db, client, channel):
    resp = client.post("/api/messages/course-1", json=payload)

    assert resp.status_code == 422
    mock_store_cls.return_value.append.assert_not_called()
    channel.publish.assert_not_awaited()


@patch("api.messages.MessageStore")
def test_recent_messages_uses_default_limit(mock_store_cls, mock_get_db, client):
    mock_store = AsyncMock()
    mock_store.list_recent.return_value = [_stored(text="a"), _stored(text="b")]
    mock_store_cls.return_value = mock_store

    resp = client.get("/api/messages")

    assert resp.status_code == 200
    assert [m["text"] for m in resp.json()] == ["a", "b"]
    mock_store.list_recent.assert_awaited_once_with(100)


@patch("api.messages.MessageStore")
def test_conversation_messages(mock_store_cls, mock_get_db, client):
    mock_store = AsyncMock()
    mock_store.list_by_conversation.return_value = [_stored(image="/uploads/messages/x.png")]
    mock_store_cls.return_value = mock_store

    resp = client.get("/api/messages/course-1")

    assert resp.status_code == 200
    (msg,) = resp.json()
    assert msg["image"] == "/uploads/messages/x.png"
    assert set(msg) == {
        "id", "conversationId", "sender", "senderUserId", "text",
        "image", "timestamp", "read", "createdAt",
    }
    mock_store.list_by_conversation.assert_awaited_once_with("course-1")


@patch("api.messages.MessageStore")
def test_fetch_failure_is_500(mock_store_cls, mock_get_db, client):
    mock_store = AsyncMock()
    mock_store.list_by_conversation.side_effect = PersistenceError("db down")
    mock_store_cls.return_value = mock_store

    resp = client.get("/api/messages/course-1")
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to fetch messages"


@patch("api.messages.ConversationAggregator")
def test_all_conversations(mock_agg_cls, mock_get_db, client):
    first, last = _stored(text="Hi"), _stored(text="Bye")
    mock_agg = AsyncMock()
    mock_agg.list_conversations.return_value = [
        ConversationSummary("course-1", [first, last], "Bye", last.timestamp, 2),
        ConversationSummary("course-2", [_stored("course-2", "Solo")], "Solo", first.timestamp, 1),
    ]
    mock_agg_cls.return_value = mock_agg

    resp = client.get("/api/messages/conversations/all")

    assert resp.status_code == 200
    by_id = {c["conversationId"]: c for c in resp.json()}
    assert by_id["course-1"]["lastMessage"] == "Bye"
    assert by_id["course-1"]["unread"] == 2
    assert len(by_id["course-1"]["messages"]) == 2
    assert len(by_id["course-2"]["messages"]) == 1


def test_upload_image(client):
    resp = client.post(
        "/api/messages/upload",
        files={"image": ("diagram.PNG", b"\x89PNG fake", "image/png")},
    )

    assert resp.status_code == 200
    url = resp.json()["url"]
    assert url.startswith("/uploads/messages/") and url.endswith(".png")
    saved = Path(settings.UPLOAD_DIR) / "messages" / url.rsplit("/", 1)[1]
    assert saved.read_bytes() == b"\x89PNG fake"


def test_upload_rejects_non_image(client):
    resp = client.post(
        "/api/messages/upload",
        files={"image": ("notes.txt", b"hello", "text/plain")},
    )
    assert resp.status_code == 400


def test_upload_requires_file(client):
    resp = client.post("/api/messages/upload")
    assert resp.status_code == 400


def test_upload_enforces_size_limit(client, monkeypatch):
    monkeypatch.setattr(settings, "MAX_IMAGE_BYTES", 4)
    resp = client.post(
        "/api/messages/upload",
        files={"image": ("big.png", b"123456789", "image/png")},
    )
    assert resp.status_code == 413


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_upload_suffix_follows_content_type(client):
    resp = client.post(
        "/api/messages/upload",
        files={"image": ("x.html", b"<script>alert(1)</script>", "image/png")},
    )

    assert resp.status_code == 200
    url = resp.json()["url"]
    assert url.endswith(".png")
    served = client.get(url)
    assert served.status_code == 200
    assert served.headers["content-type"] == "image/png"


@pytest.mark.parametrize(
    "filename, content_type",
    [
        ("logo.svg", "image/svg+xml"),
        ("page.html", "text/html"),
        ("photo.bmp", "image/bmp"),
    ],
)
def test_upload_rejects_unlisted_types(filename, content_type, client):
    resp = client.post(
        "/api/messages/upload",
        files={"image": (filename, b"<svg onload=alert(1)>", content_type)},
    )
    assert resp.status_code == 400


@patch("api.messages.MessageStore")
def test_send_rejects_long_path_conversation(mock_store_cls, mock_get_db, client, channel):
    resp = client.post(f"/api/messages/{'c' * 101}", json={"sender": "student", "text": "Hi"})

    assert resp.status_code == 422
    mock_store_cls.return_value.append.assert_not_called()
    channel.publish.assert_not_awaited()


@patch("api.messages.MessageStore")
@pytest.mark.parametrize(
    "field, size",
    [("conversationId", 101), ("senderUserId", 101), ("userId", 101), ("image", 501)],
)
def test_send_rejects_oversized_fields(mock_store_cls, field, size, mock_get_db, client, channel):
    resp = client.post("/api/messages", json={"sender": "student", field: "x" * size})

    assert resp.status_code == 422
    mock_store_cls.return_value.append.assert_not_called()
    channel.publish.assert_not_awaited()
