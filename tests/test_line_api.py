import json

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_messaging_client
from app.config import Settings
from app.db import Base
from app.models import db_models  # noqa: F401  registers the tables
from app.models.sql_store import SqlStore
from app.services.line_messaging import LineMessagingClient, card_message

from helpers import LINE_USER_ID, RecordingTransport, VIEW_URL

CONFIGURED = Settings(line_channel_access_token="token", line_channel_secret="secret")


def test_upsert_line_user_creates_then_updates(client):
    payload = {"lineUserId": LINE_USER_ID, "displayName": "山田", "pictureUrl": "https://example.com/a.png"}
    created = client.post("/api/line-users", json=payload)
    assert created.status_code == 201
    assert created.json()["lineUserId"] == LINE_USER_ID
    assert "createdAt" in created.json()

    updated = client.post("/api/line-users", json={**payload, "displayName": "山田 太郎"})
    assert updated.status_code == 200
    assert updated.json()["id"] == created.json()["id"]
    assert updated.json()["displayName"] == "山田 太郎"


def test_get_line_user(client):
    client.post("/api/line-users", json={"lineUserId": LINE_USER_ID, "displayName": "山田"})
    resp = client.get(f"/api/line-users/{LINE_USER_ID}")
    assert resp.status_code == 200
    assert resp.json()["displayName"] == "山田"
    assert resp.json()["pictureUrl"] is None


def test_unknown_line_user_is_404(client):
    resp = client.get("/api/line-users/Unobody")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "LINE user not found"


def test_line_user_id_is_required(client):
    resp = client.post("/api/line-users", json={"lineUserId": "", "displayName": "山田"})
    assert resp.status_code == 422


def test_submissions_are_recorded_per_user(client):
    client.post("/api/line-users", json={"lineUserId": LINE_USER_ID, "displayName": "山田"})
    created = client.post(
        "/api/form-submissions",
        json={"lineUserId": LINE_USER_ID, "formUrl": VIEW_URL, "additionalMessage": "よろしく"},
    )
    assert created.status_code == 201
    assert created.json()["success"] is True

    listed = client.get(f"/api/form-submissions/{LINE_USER_ID}")
    assert listed.status_code == 200
    assert [entry["additionalMessage"] for entry in listed.json()] == ["よろしく"]


def test_submission_for_unknown_user_is_404(client):
    resp = client.post("/api/form-submissions", json={"lineUserId": LINE_USER_ID, "formUrl": VIEW_URL})
    assert resp.status_code == 404


def test_send_message_without_credentials(client, override):
    override(get_messaging_client, LineMessagingClient(Settings()))
    resp = client.post("/api/line/send-message", json={"userId": LINE_USER_ID, "message": "hi"})
    assert resp.status_code == 500
    assert resp.json()["success"] is False
    assert resp.json()["message"] == "LINE API credentials not configured"


@pytest.mark.parametrize(
    "payload",
    [
        {"message": "hi"},
        {"userId": LINE_USER_ID},
        {"userId": LINE_USER_ID, "type": "card"},
    ],
)
def test_send_message_requires_fields(client, override, payload):
    override(get_messaging_client, LineMessagingClient(CONFIGURED))
    assert client.post("/api/line/send-message", json=payload).status_code == 400


def test_send_message_rejects_malformed_user_id(client, override):
    recorder = RecordingTransport()
    override(get_messaging_client, LineMessagingClient(CONFIGURED, transport=recorder.transport()))
    resp = client.post("/api/line/send-message", json={"userId": "not-a-line-id", "message": "hi"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid LINE user ID format"
    assert recorder.requests == []


def test_send_card_pushes_to_line(client, override):
    recorder = RecordingTransport({"api.line.me": httpx.Response(200, json={})})
    override(get_messaging_client, LineMessagingClient(CONFIGURED, transport=recorder.transport()))
    resp = client.post(
        "/api/line/send-message",
        json={"userId": LINE_USER_ID, "type": "card", "formUrl": VIEW_URL, "title": "受付"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Message sent successfully"}

    request = recorder.requests[0]
    assert request.headers["authorization"] == "Bearer token"
    body = json.loads(request.content)
    assert body["to"] == LINE_USER_ID
    assert body["messages"][0]["template"]["actions"][0]["uri"] == VIEW_URL


def test_line_error_is_reported(client, override):
    recorder = RecordingTransport({"api.line.me": httpx.Response(403, json={"message": "forbidden"})})
    override(get_messaging_client, LineMessagingClient(CONFIGURED, transport=recorder.transport()))
    resp = client.post("/api/line/send-message", json={"userId": LINE_USER_ID, "message": "hi"})
    assert resp.status_code == 500
    assert resp.json()["message"] == "Failed to send message"


def test_card_message_truncates_to_line_limits():
    message = card_message(VIEW_URL, "t" * 50, "d" * 80)
    assert len(message["template"]["title"]) == 40
    assert len(message["template"]["text"]) == 60


def test_sql_store_upsert_is_idempotent():
    engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    sql_store = SqlStore(sessionmaker(bind=engine, autoflush=False))

    first, created = sql_store.upsert(LINE_USER_ID, "山田", None)
    second, created_again = sql_store.upsert(LINE_USER_ID, "山田 太郎", "https://example.com/a.png")
    assert created and not created_again
    assert first.id == second.id
    assert sql_store.get(LINE_USER_ID).display_name == "山田 太郎"

    sql_store.append_submission(LINE_USER_ID, VIEW_URL, "", True)
    submissions = sql_store.list_by_user(LINE_USER_ID)
    assert len(submissions) == 1
    assert submissions[0].additional_message is None
    assert sql_store.list_by_user("Uother") == []
