"""Health, AI chat, presence and event stream routes."""

import pytest
from httpx import AsyncClient
from sqlalchemy.orm import Session

from schoolops.models import Activity, Category


@pytest.mark.asyncio
async def test_root_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_api_health(client: AsyncClient, broadcaster):
    broadcaster.open_connection()

    response = await client.get("/api/v1/health")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["ai_providers"] == []
    assert body["sse_connections"] == 1


@pytest.mark.asyncio
async def test_detailed_health(client: AsyncClient):
    response = await client.get("/api/v1/health/detailed")

    components = response.json()["components"]
    assert components["database"]["status"] == "connected"
    assert {p["name"] for p in components["ai"]["providers"]} == {"claude", "gemini", "deepseek", "kimi"}
    assert components["sse"]["total_connections"] == 0


@pytest.mark.asyncio
async def test_probes(client: AsyncClient):
    assert (await client.get("/api/v1/health/ready")).json() == {"ready": True}
    assert (await client.get("/api/v1/health/live")).json() == {"alive": True}


@pytest.mark.asyncio
async def test_providers_listed_unavailable(client: AsyncClient):
    response = await client.get("/api/v1/ai/providers")

    assert response.status_code == 200
    assert all(p["available"] is False for p in response.json())
    assert response.json()[0]["displayName"] == "Anthropic Claude"


@pytest.mark.asyncio
async def test_parse_without_providers_uses_keywords(client: AsyncClient, maintenance: Category):
    response = await client.post("/api/v1/ai/parse", json={"message": "Broken door in classroom 2"})

    body = response.json()
    assert response.status_code == 200
    assert body["categoryId"] == maintenance.id
    assert body["subcategory"] == "Fix Door"
    assert body["location"] == "Classroom 2"
    assert body["fallbackUsed"] is True


@pytest.mark.asyncio
async def test_initial_summary_fallback(client: AsyncClient, db: Session, maintenance: Category):
    db.add(Activity(category_id=maintenance.id, subcategory="Leak", location="Room 4", status="Open"))
    db.commit()

    response = await client.post("/api/v1/ai/chat", json={"message": "INITIAL_SUMMARY"})

    body = response.json()
    assert response.status_code == 200
    assert body["fallbackUsed"] is True
    assert body["provider"] == "fallback"
    assert "Maintenance" in body["analysis"]
    assert body["suggestions"]
    assert [m["role"] for m in body["history"]] == ["user", "assistant"]
    assert body["history"][1]["content"] == body["analysis"]


@pytest.mark.asyncio
async def test_initial_summary_from_client_context(client: AsyncClient):
    context = {
        "activities": [{"id": "a1", "categoryId": "k1", "subcategory": "Fight", "location": "Hall", "status": "Open"}],
        "allCategories": [{"id": "k1", "name": "Discipline"}],
    }

    response = await client.post("/api/v1/ai/chat", json={"message": "INITIAL_SUMMARY", "context": context})

    assert "Discipline" in response.json()["analysis"]


@pytest.mark.asyncio
async def test_chat_streams_unavailable_notice(client: AsyncClient):
    response = await client.post(
        "/api/v1/ai/chat",
        json={"message": "What is open?", "history": [{"role": "user", "content": "hi"}]},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "not available" in response.text


@pytest.mark.asyncio
async def test_presence_update_is_broadcast(client: AsyncClient, broadcaster):
    connection = broadcaster.open_connection()
    connection.queue.get_nowait()

    response = await client.post(
        "/api/v1/presence",
        json={"userId": "cuser00000000000000000001", "userName": "Grace", "activityId": "a1"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "active"
    frame = connection.queue.get_nowait()
    assert '"type":"presence_updated"' in frame
    assert '"isOnline":true' in frame

    listed = await client.get("/api/v1/presence")
    assert [p["userName"] for p in listed.json()] == ["Grace"]

    await client.post(
        "/api/v1/presence",
        json={"userId": "cuser00000000000000000001", "userName": "Grace", "status": "offline"},
    )
    assert (await client.get("/api/v1/presence")).json() == []


@pytest.mark.asyncio
async def test_event_stats(client: AsyncClient, broadcaster):
    connection = broadcaster.open_connection()

    response = await client.get("/api/v1/events/stats")

    body = response.json()
    assert body["totalConnections"] == 1
    assert body["connections"][0]["connectionId"] == connection.connection_id
