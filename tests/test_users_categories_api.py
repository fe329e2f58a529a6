"""User and category routes."""

import pytest
from httpx import AsyncClient
from sqlalchemy.orm import Session

from schoolops.config.database import UNPLANNED_CATEGORY_ID
from schoolops.models import Activity, Category, User


@pytest.mark.asyncio
async def test_create_and_list_users(client: AsyncClient):
    response = await client.post(
        "/api/v1/users",
        json={"name": "Sam Support", "phoneNumber": "+15550000009", "role": "Support Staff"},
    )

    assert response.status_code == 201
    assert response.json()["phoneNumber"] == "+15550000009"

    listed = await client.get("/api/v1/users")
    assert [u["name"] for u in listed.json()] == ["Sam Support"]


@pytest.mark.asyncio
@pytest.mark.parametrize("phone", ["5550000009", "+1555", "+1555000000a"])
async def test_create_user_rejects_bad_phone(client: AsyncClient, phone):
    response = await client.post(
        "/api/v1/users",
        json={"name": "Sam Support", "phoneNumber": phone, "role": "Teacher"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_phone_conflicts(client: AsyncClient, teacher: User):
    response = await client.post(
        "/api/v1/users",
        json={"name": "Copy", "phoneNumber": teacher.phone_number, "role": "Teacher"},
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_get_user_invalid_id(client: AsyncClient):
    response = await client.get("/api/v1/users/123")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_ID"


@pytest.mark.asyncio
async def test_last_admin_cannot_be_deleted(client: AsyncClient, admin: User):
    response = await client.delete(f"/api/v1/users/{admin.id}")

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_last_admin_role_cannot_change(client: AsyncClient, admin: User):
    response = await client.put(f"/api/v1/users/{admin.id}", json={"role": "Teacher"})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_user_reassigns_activities_to_admin(
    client: AsyncClient, db: Session, admin: User, teacher: User, maintenance: Category
):
    activity = Activity(
        user_id=teacher.id,
        category_id=maintenance.id,
        subcategory="Leak",
        location="Room 1",
        assigned_to_user_id=teacher.id,
    )
    db.add(activity)
    db.commit()
    activity_id = activity.id
    teacher_id = teacher.id

    response = await client.delete(f"/api/v1/users/{teacher_id}")

    assert response.status_code == 200
    assert response.json()["activitiesToReassign"] == [{"id": activity_id, "userId": admin.id}]
    db.expire_all()
    moved = db.get(Activity, activity_id)
    assert moved.user_id == admin.id
    assert moved.assigned_to_user_id == admin.id
    assert db.get(User, teacher_id) is None


@pytest.mark.asyncio
async def test_categories_include_unplanned(client: AsyncClient, maintenance: Category):
    response = await client.get("/api/v1/categories")

    names = {c["name"]: c for c in response.json()}
    assert names["Unplanned"]["isSystem"] is True
    assert names["Maintenance"]["isSystem"] is False


@pytest.mark.asyncio
async def test_duplicate_category_name_conflicts(client: AsyncClient, maintenance: Category):
    response = await client.post("/api/v1/categories", json={"name": "  MAINTENANCE "})

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_system_category_cannot_be_deleted(client: AsyncClient):
    response = await client.delete(f"/api/v1/categories/{UNPLANNED_CATEGORY_ID}")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_category_moves_activities_to_unplanned(
    client: AsyncClient, db: Session, discipline: Category
):
    activity = Activity(category_id=discipline.id, subcategory="Fight", location="Playground")
    db.add(activity)
    db.commit()
    activity_id = activity.id
    discipline_id = discipline.id

    response = await client.delete(f"/api/v1/categories/{discipline_id}")

    assert response.status_code == 200
    assert response.json()["activitiesToUpdate"] == [
        {"id": activity_id, "categoryId": UNPLANNED_CATEGORY_ID}
    ]
    db.expire_all()
    assert db.get(Activity, activity_id).category_id == UNPLANNED_CATEGORY_ID
    assert db.get(Category, discipline_id) is None
