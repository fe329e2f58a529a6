"""Activity API routes."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.orm import Session

from schoolops.models import Activity, Category, User
from schoolops.models.base import CUID_PATTERN
from schoolops.services.background import drain


async def create_activity(client: AsyncClient, **body) -> dict:
    payload = {"subcategory": "Leak", "location": "Room 4", **body}
    response = await client.post("/api/v1/activities", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_activity_by_category_name(client: AsyncClient, maintenance: Category):
    data = await create_activity(client, category="maintenance")

    assert CUID_PATTERN.match(data["id"])
    assert data["status"] == "Unassigned"
    assert data["categoryId"] == maintenance.id
    assert data["updates"] == []


@pytest.mark.asyncio
async def test_create_activity_unknown_category_name_goes_to_unplanned(client: AsyncClient):
    data = await create_activity(client, category="plumbing")

    assert data["status"] == "Unassigned"
    assert data["categoryId"] == "unplanned"


@pytest.mark.asyncio
async def test_create_activity_with_unknown_category_id(client: AsyncClient):
    response = await client.post(
        "/api/v1/activities",
        json={"categoryId": "cmissing00000000000000000", "subcategory": "Leak", "location": "Room 4"},
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_create_activity_requires_category(client: AsyncClient):
    response = await client.post("/api/v1/activities", json={"subcategory": "Leak", "location": "Room 4"})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_create_activity_rejects_out_of_range_latitude(client: AsyncClient, maintenance: Category):
    response = await client.post(
        "/api/v1/activities",
        json={"categoryId": maintenance.id, "subcategory": "Leak", "location": "Room 4", "latitude": 91},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_activity_with_assignee_is_open_and_notifies(
    client: AsyncClient, maintenance: Category, teacher: User, maintenance_worker: User, twilio_client
):
    data = await create_activity(
        client,
        categoryId=maintenance.id,
        userId=teacher.id,
        assignedToUserId=maintenance_worker.id,
    )

    assert data["status"] == "Open"
    await drain()
    to, body = twilio_client.send_message.call_args.args
    assert to == maintenance_worker.phone_number
    assert f"MAIN-{data['id'][-4:]}" in body


@pytest.mark.asyncio
async def test_create_activity_explicitly_unassigned_drops_assignee(
    client: AsyncClient, maintenance: Category, maintenance_worker: User, twilio_client
):
    data = await create_activity(
        client,
        categoryId=maintenance.id,
        status="Unassigned",
        assignedToUserId=maintenance_worker.id,
    )

    assert data["status"] == "Unassigned"
    assert data["assignedToUserId"] is None
    await drain()
    twilio_client.send_message.assert_not_called()


@pytest.mark.asyncio
async def test_create_activity_broadcasts_event(client: AsyncClient, maintenance: Category, broadcaster):
    connection = broadcaster.open_connection()
    connection.queue.get_nowait()  # connected heartbeat

    data = await create_activity(client, categoryId=maintenance.id)

    frame = connection.queue.get_nowait()
    assert frame.startswith("data: ")
    assert '"type":"activity_created"' in frame
    assert data["id"] in frame


@pytest.mark.asyncio
async def test_get_activity_invalid_id(client: AsyncClient):
    response = await client.get("/api/v1/activities/not-a-cuid")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_ID"


@pytest.mark.asyncio
async def test_get_activity_not_found(client: AsyncClient):
    response = await client.get("/api/v1/activities/cmissing00000000000000000")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_activities_paginates_and_filters(
    client: AsyncClient, maintenance: Category, discipline: Category
):
    for _ in range(3):
        await create_activity(client, categoryId=maintenance.id)
    await create_activity(client, categoryId=discipline.id, subcategory="Fight", location="Playground")

    response = await client.get("/api/v1/activities", params={"limit": 2, "page": 1})
    body = response.json()
    assert response.status_code == 200
    assert len(body["data"]) == 2
    assert body["meta"] == {"page": 1, "limit": 2, "total": 4, "totalPages": 2}

    response = await client.get("/api/v1/activities", params={"category_id": discipline.id})
    assert [a["subcategory"] for a in response.json()["data"]] == ["Fight"]
    assert response.json()["data"][0]["categoryName"] == "Discipline"


@pytest.mark.asyncio
async def test_list_activities_rejects_large_limit(client: AsyncClient):
    response = await client.get("/api/v1/activities", params={"limit": 101})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_put_rejects_unknown_update_type(client: AsyncClient, maintenance: Category):
    data = await create_activity(client, categoryId=maintenance.id)

    response = await client.put(
        f"/api/v1/activities/{data['id']}",
        json={"type": "partial_update", "payload": {}},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


@pytest.mark.asyncio
async def test_full_update_changes_fields(client: AsyncClient, maintenance: Category):
    data = await create_activity(client, categoryId=maintenance.id)

    response = await client.put(
        f"/api/v1/activities/{data['id']}",
        json={"type": "full_update", "payload": {"location": "Room 7", "notes": "Under the sink"}},
    )

    assert response.status_code == 200
    assert response.json()["location"] == "Room 7"
    assert response.json()["notes"] == "Under the sink"
    assert response.json()["subcategory"] == "Leak"


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["location", "subcategory", "categoryId"])
async def test_full_update_rejects_null_required_field(client: AsyncClient, maintenance: Category, field: str):
    data = await create_activity(client, categoryId=maintenance.id)

    response = await client.put(
        f"/api/v1/activities/{data['id']}",
        json={"type": "full_update", "payload": {field: None}},
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    unchanged = (await client.get(f"/api/v1/activities/{data['id']}")).json()
    assert unchanged["location"] == "Room 4"
    assert unchanged["subcategory"] == "Leak"


@pytest.mark.asyncio
async def test_status_update_assigns_and_promotes(
    client: AsyncClient, maintenance: Category, maintenance_worker: User
):
    data = await create_activity(client, categoryId=maintenance.id)

    response = await client.put(
        f"/api/v1/activities/{data['id']}",
        json={
            "type": "status_update",
            "payload": {"assignToUserId": maintenance_worker.id, "instructions": "Bring a wrench"},
        },
    )

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "Open"
    assert body["assignedToUserId"] == maintenance_worker.id
    assert body["assignmentInstructions"] == "Bring a wrench"


@pytest.mark.asyncio
async def test_status_update_null_assignee_unassigns(
    client: AsyncClient, maintenance: Category, maintenance_worker: User
):
    data = await create_activity(
        client, categoryId=maintenance.id, assignedToUserId=maintenance_worker.id
    )
    url = f"/api/v1/activities/{data['id']}"
    await client.put(url, json={"type": "status_update", "payload": {"instructions": "Mop the floor"}})

    response = await client.put(url, json={"type": "status_update", "payload": {"assignToUserId": None}})

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "Unassigned"
    assert body["assignedToUserId"] is None
    assert body["assignmentInstructions"] is None


@pytest.mark.asyncio
async def test_status_update_with_unknown_assignee(client: AsyncClient, maintenance: Category):
    data = await create_activity(client, categoryId=maintenance.id)

    response = await client.put(
        f"/api/v1/activities/{data['id']}",
        json={"type": "status_update", "payload": {"assignToUserId": "cmissing00000000000000000"}},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_resolve_after_reopen_has_no_resolution_notes(client: AsyncClient, maintenance: Category):
    data = await create_activity(client, categoryId=maintenance.id)
    url = f"/api/v1/activities/{data['id']}"

    await client.put(
        url,
        json={"type": "status_update", "payload": {"status": "Resolved", "resolutionNotes": "Fixed tap"}},
    )
    reopened = await client.put(url, json={"type": "status_update", "payload": {"status": "Open"}})
    assert reopened.json()["resolutionNotes"] is None

    response = await client.put(url, json={"type": "status_update", "payload": {"status": "Resolved"}})

    assert response.status_code == 200
    assert response.json()["status"] == "Resolved"
    assert response.json()["resolutionNotes"] is None


@pytest.mark.asyncio
async def test_status_update_rejects_unknown_status(client: AsyncClient, maintenance: Category):
    data = await create_activity(client, categoryId=maintenance.id)

    response = await client.put(
        f"/api/v1/activities/{data['id']}",
        json={"type": "status_update", "payload": {"status": "Done-ish"}},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_add_update_returns_activity_with_trail(
    client: AsyncClient, maintenance: Category, teacher: User, maintenance_worker: User, twilio_client
):
    data = await create_activity(
        client, categoryId=maintenance.id, userId=teacher.id, assignedToUserId=maintenance_worker.id
    )
    await drain()
    twilio_client.send_message.reset_mock()

    response = await client.post(
        f"/api/v1/activities/{data['id']}/updates",
        json={"notes": "Parts ordered", "authorId": maintenance_worker.id},
    )

    body = response.json()
    assert response.status_code == 201
    assert len(body["updates"]) == 1
    assert body["updates"][0]["notes"] == "Parts ordered"
    assert body["updates"][0]["statusContext"] == "Open"
    assert body["updates"][0]["updateType"] == "progress"

    await drain()
    recipients = [call.args[0] for call in twilio_client.send_message.call_args_list]
    assert recipients == [teacher.phone_number]


@pytest.mark.asyncio
async def test_add_update_unknown_author(client: AsyncClient, maintenance: Category):
    data = await create_activity(client, categoryId=maintenance.id)

    response = await client.post(
        f"/api/v1/activities/{data['id']}/updates",
        json={"notes": "Parts ordered", "authorId": "cmissing00000000000000000"},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_request(
    client: AsyncClient, maintenance: Category, maintenance_worker: User, twilio_client
):
    twilio_client.send_message.side_effect = RuntimeError("twilio down")

    data = await create_activity(client, categoryId=maintenance.id, assignedToUserId=maintenance_worker.id)

    assert data["status"] == "Open"


@pytest.mark.asyncio
async def test_delete_activity(client: AsyncClient, db: Session, maintenance: Category):
    data = await create_activity(client, categoryId=maintenance.id)

    response = await client.delete(f"/api/v1/activities/{data['id']}")

    assert response.status_code == 204
    db.expire_all()
    assert db.get(Activity, data["id"]) is None
