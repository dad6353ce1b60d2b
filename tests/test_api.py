"""
API tests: the AI Studio and Slack webhooks through the FastAPI app.

The lifespan is not run; app.state is wired to the test router and store.
"""
import json
from urllib.parse import urlencode

import httpx
import pytest

from handoff.main import app


@pytest.fixture
async def client(event_router, store):
    app.state.event_router = event_router
    app.state.store = store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    del app.state.event_router
    del app.state.store


def _form(**fields) -> dict:
    return {
        "content": urlencode(fields),
        "headers": {"Content-Type": "application/x-www-form-urlencoded"},
    }


# ===========================
# AI Studio
# ===========================

@pytest.mark.asyncio
async def test_start_opens_thread(client, chat, start_payload):
    response = await client.post("/start", json=start_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["thread_id"] == chat.posts[0]["ts"]
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_start_invalid_payload_still_200(client, chat):
    response = await client.post("/start", json={"sender": "15551234567"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "error"
    assert body["data"]["errors"]
    assert chat.posts == []


@pytest.mark.asyncio
async def test_inbound_unknown_session_is_warning(client, chat):
    response = await client.post("/inbound", json={"sessionId": "zzz", "type": "text", "text": "hi"})

    assert response.status_code == 200
    assert response.json()["status"] == "warning"
    assert chat.posts == []


@pytest.mark.asyncio
async def test_inbound_after_start(client, chat, start_payload):
    await client.post("/start", json=start_payload())

    response = await client.post(
        "/inbound",
        json={"sessionId": "abc-123", "type": "text", "text": "Any news?"}
    )

    assert response.json()["status"] == "success"
    assert "Any news?" in chat.posts[-1]["text"]


@pytest.mark.asyncio
async def test_router_not_initialized(client):
    app.state.event_router = None

    response = await client.post("/start", json={"sessionId": "abc-123"})

    assert response.status_code == 503


# ===========================
# Slack events
# ===========================

@pytest.mark.asyncio
async def test_url_verification(client):
    response = await client.post(
        "/slack/events",
        json={"type": "url_verification", "challenge": "3eZbrw1aBm2rZgRNFdxV2595E9CY3gmdALWMmHkvFXO7tYXAYM8P"}
    )

    assert response.json() == {"challenge": "3eZbrw1aBm2rZgRNFdxV2595E9CY3gmdALWMmHkvFXO7tYXAYM8P"}


@pytest.mark.asyncio
async def test_agent_reply_event_processed(client, ai, chat, start_payload):
    await client.post("/start", json=start_payload())
    thread = chat.posts[0]["ts"]

    response = await client.post("/slack/events", json={
        "type": "event_callback",
        "event": {
            "type": "message",
            "channel": "C_SUPPORT",
            "user": "U_AGENT",
            "text": "On it",
            "ts": "1700000001.000001",
            "thread_ts": thread,
        },
    })

    assert response.json() == {"ok": True}
    assert ai.outbound == [("abc-123", "text", {"text": "On it"})]


@pytest.mark.asyncio
async def test_slack_retry_dropped(client, ai, chat, start_payload):
    await client.post("/start", json=start_payload())

    response = await client.post(
        "/slack/events",
        json={
            "type": "event_callback",
            "event": {
                "type": "message",
                "user": "U_AGENT",
                "text": "On it",
                "ts": "1700000001.000001",
                "thread_ts": chat.posts[0]["ts"],
            },
        },
        headers={"X-Slack-Retry-Num": "1", "X-Slack-Retry-Reason": "http_timeout"}
    )

    assert response.json() == {"ok": True}
    assert ai.outbound == []


@pytest.mark.asyncio
async def test_malformed_event_body(client):
    response = await client.post(
        "/slack/events",
        content=b"not json",
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 200
    assert response.json() == {"ok": False}


# ===========================
# Slack interactions & commands
# ===========================

@pytest.mark.asyncio
async def test_close_button_interaction(client, ai, start_payload):
    await client.post("/start", json=start_payload())

    payload = {
        "type": "block_actions",
        "user": {"id": "U_AGENT"},
        "actions": [{"action_id": "close_ticket", "value": "abc-123"}],
    }
    response = await client.post("/slack/interactions", **_form(payload=json.dumps(payload)))

    assert response.status_code == 200
    assert ai.disconnects == ["abc-123"]


@pytest.mark.asyncio
async def test_modal_validation_errors_returned(client):
    payload = {
        "type": "view_submission",
        "user": {"id": "U_AGENT"},
        "view": {
            "callback_id": "save_contact_modal",
            "private_metadata": json.dumps({"phone": "15551234567"}),
            "state": {"values": {"contact_name": {"name_input": {"value": ""}}}},
        },
    }

    response = await client.post("/slack/interactions", **_form(payload=json.dumps(payload)))

    body = response.json()
    assert body["response_action"] == "errors"
    assert "contact_name" in body["errors"]


@pytest.mark.asyncio
async def test_slash_command_is_ephemeral(client, contacts):
    response = await client.post(
        "/slack/commands",
        **_form(command="/handoff", text="role add academy", user_id="U_ADMIN", channel_id="C_SUPPORT")
    )

    assert response.json() == {"response_type": "ephemeral", "text": "Role `academy` added"}
    assert await contacts.list_roles() == ["academy"]


@pytest.mark.asyncio
async def test_slash_command_missing_fields(client):
    response = await client.post("/slack/commands", **_form(text="help"))

    assert response.json()["text"] == "Malformed command request"


# ===========================
# Health & root
# ===========================

@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_reports_store_and_router(client):
    response = await client.get("/health/ready")

    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"]["store"] == "healthy"
    assert body["services"]["router"] == "healthy"
    assert body["services"]["pending_escalations"] == "0"


@pytest.mark.asyncio
async def test_liveness(client):
    response = await client.get("/health/live")

    assert response.json()["status"] == "alive"


@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")

    body = response.json()
    assert body["status"] == "running"
    assert "stats" in body
