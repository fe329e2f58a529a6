"""LLM configuration routes."""

import pytest
from httpx import AsyncClient
from sqlalchemy.orm import Session

from schoolops.models import ApiKey
from schoolops.services.encryption import decrypt_value

BASE = "/api/v1/llm-configurations"


async def create(client: AsyncClient, **overrides) -> dict:
    payload = {
        "provider": "deepseek",
        "name": "DeepSeek chat",
        "apiKey": "sk-deepseek-secret",
        **overrides,
    }
    response = await client.post(BASE, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_api_key_is_encrypted_and_never_returned(client: AsyncClient, db: Session):
    config = await create(client, configuration={"top_p": 0.9})

    assert "apiKey" not in config
    assert config["hasApiKey"] is True
    assert config["configuration"] == {"top_p": 0.9}

    stored = db.get(ApiKey, config["apiKeyId"])
    assert stored.encrypted_key != "sk-deepseek-secret"
    assert decrypt_value(stored.encrypted_key) == "sk-deepseek-secret"


@pytest.mark.asyncio
async def test_only_one_default(client: AsyncClient):
    first = await create(client, name="First", isDefault=True)
    second = await create(client, name="Second", isDefault=True)

    listed = (await client.get(BASE)).json()

    defaults = [c["id"] for c in listed if c["isDefault"]]
    assert defaults == [second["id"]]
    assert listed[0]["id"] == second["id"]

    await client.put(f"{BASE}/{first['id']}", json={"isDefault": True})
    listed = (await client.get(BASE)).json()
    assert [c["id"] for c in listed if c["isDefault"]] == [first["id"]]


@pytest.mark.asyncio
async def test_update_replaces_api_key(client: AsyncClient, db: Session):
    config = await create(client)

    response = await client.put(f"{BASE}/{config['id']}", json={"apiKey": "sk-rotated", "model": "deepseek-coder"})

    body = response.json()
    assert response.status_code == 200
    assert body["model"] == "deepseek-coder"
    assert body["apiKeyId"] != config["apiKeyId"]
    db.expire_all()
    assert db.get(ApiKey, config["apiKeyId"]) is None
    assert decrypt_value(db.get(ApiKey, body["apiKeyId"]).encrypted_key) == "sk-rotated"


@pytest.mark.asyncio
async def test_unknown_provider_rejected(client: AsyncClient):
    response = await client.post(BASE, json={"provider": "watson", "name": "x", "apiKey": "k"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_connection_test_reports_bad_key(client: AsyncClient):
    config = await create(client, provider="claude", name="Claude", apiKey="not-a-claude-key")

    response = await client.post(f"{BASE}/{config['id']}/test")

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is False
    assert "sk-ant-" in body["message"]


@pytest.mark.asyncio
async def test_delete_configuration(client: AsyncClient, db: Session):
    config = await create(client)

    response = await client.delete(f"{BASE}/{config['id']}")

    assert response.status_code == 204
    assert (await client.get(f"{BASE}/{config['id']}")).status_code == 404
    db.expire_all()
    assert db.get(ApiKey, config["apiKeyId"]) is None
