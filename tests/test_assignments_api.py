"""Activity assignment routes."""

import pytest
from httpx import AsyncClient

from schoolops.models import Activity, Category, User
from schoolops.services.background import drain


@pytest.fixture
def activity(db, maintenance: Category, teacher: User) -> Activity:
    row = Activity(
        user_id=teacher.id,
        category_id=maintenance.id,
        subcategory="Fix Door",
        location="Room 9",
        status="Unassigned",
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def url(activity: Activity, suffix: str = "") -> str:
    return f"/api/v1/activities/{activity.id}/assignments{suffix}"


@pytest.mark.asyncio
async def test_create_assignment(
    client: AsyncClient, activity: Activity, admin: User, maintenance_worker: User, twilio_client
):
    response = await client.post(
        url(activity),
        json={
            "userId": maintenance_worker.id,
            "assignedBy": admin.id,
            "assignmentType": "secondary",
            "roleInstructions": "Check the hinges",
        },
    )

    body = response.json()
    assert response.status_code == 201
    assert body["assignmentType"] == "secondary"
    assert body["status"] == "active"
    assert body["assignedUserName"] == "Mia Maintenance"
    assert body["assignedByName"] == "Grace Admin"

    await drain()
    to, message = twilio_client.send_message.call_args.args
    assert to == maintenance_worker.phone_number
    assert "Task Assigned (secondary)" in message
    assert "Check the hinges" in message


@pytest.mark.asyncio
async def test_duplicate_assignment_conflicts(
    client: AsyncClient, activity: Activity, admin: User, maintenance_worker: User
):
    payload = {"userId": maintenance_worker.id, "assignedBy": admin.id}

    first = await client.post(url(activity), json=payload)
    second = await client.post(url(activity), json=payload)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "CONFLICT"
    assert second.json()["error"]["details"]["assignmentId"] == first.json()["id"]


@pytest.mark.asyncio
async def test_create_assignment_rejects_malformed_user_id(client: AsyncClient, activity: Activity, admin: User):
    response = await client.post(url(activity), json={"userId": "bob", "assignedBy": admin.id})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_assignment_unknown_user(client: AsyncClient, activity: Activity, admin: User):
    response = await client.post(
        url(activity),
        json={"userId": "cmissing00000000000000000", "assignedBy": admin.id},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_list_and_delete_assignment(
    client: AsyncClient, activity: Activity, admin: User, maintenance_worker: User, broadcaster
):
    created = (
        await client.post(url(activity), json={"userId": maintenance_worker.id, "assignedBy": admin.id})
    ).json()
    connection = broadcaster.open_connection()
    connection.queue.get_nowait()

    updated = await client.put(url(activity, f"/{created['id']}"), json={"status": "completed"})
    assert updated.status_code == 200
    assert updated.json()["status"] == "completed"
    assert '"type":"assignment_changed"' in connection.queue.get_nowait()

    listed = await client.get(url(activity))
    assert [a["id"] for a in listed.json()] == [created["id"]]

    deleted = await client.delete(url(activity, f"/{created['id']}"))
    assert deleted.status_code == 204

    missing = await client.get(url(activity, f"/{created['id']}"))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_assignments_for_unknown_activity(client: AsyncClient):
    response = await client.get("/api/v1/activities/cmissing00000000000000000/assignments")

    assert response.status_code == 404
