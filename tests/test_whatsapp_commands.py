"""Slash commands received on the WhatsApp webhook."""

import pytest
from httpx import AsyncClient
from sqlalchemy.orm import Session

from schoolops.endpoints import twilio_webhook
from schoolops.models import Activity, ActivityAssignment, Category, User, WhatsAppMessage
from schoolops.services.background import drain

WEBHOOK = "/api/v1/twilio/webhook"


def form(body: str, sender: str, sid: str = "SM1000") -> dict:
    return {"MessageSid": sid, "From": f"whatsapp:{sender}", "Body": body, "ProfileName": "Someone"}


@pytest.fixture
def assigned_task(db: Session, teacher: User, maintenance_worker: User, maintenance: Category) -> Activity:
    activity = Activity(
        user_id=teacher.id,
        category_id=maintenance.id,
        subcategory="Fix Door",
        location="Room 12",
        status="Open",
        assigned_to_user_id=maintenance_worker.id,
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return activity


@pytest.mark.asyncio
async def test_help_from_unknown_number_creates_nothing(client: AsyncClient, db: Session):
    response = await client.post(WEBHOOK, data=form("/help", "+15550000099"))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "Available commands" in response.text
    db.expire_all()
    assert db.query(Activity).count() == 0
    assert db.query(User).count() == 0
    assert db.query(WhatsAppMessage).one().status == "command"


@pytest.mark.asyncio
async def test_commands_require_a_registered_number(client: AsyncClient):
    response = await client.post(WEBHOOK, data=form("/status", "+15550000099"))

    assert "not registered" in response.text


@pytest.mark.asyncio
async def test_unknown_command(client: AsyncClient, teacher: User):
    response = await client.post(WEBHOOK, data=form("/dance", teacher.phone_number))

    assert "Unknown command: /dance" in response.text


@pytest.mark.asyncio
async def test_myreports_lists_own_reports(client: AsyncClient, teacher: User, assigned_task: Activity):
    response = await client.post(WEBHOOK, data=form("/myreports", teacher.phone_number))

    assert "Your Recent Reports (1)" in response.text
    assert f"MAIN-{assigned_task.id[-4:]}" in response.text
    assert "Room 12" in response.text


@pytest.mark.asyncio
async def test_assigned_includes_shared_assignments(
    client: AsyncClient,
    db: Session,
    teacher: User,
    maintenance_worker: User,
    maintenance: Category,
    assigned_task: Activity,
):
    shared = Activity(
        user_id=teacher.id,
        category_id=maintenance.id,
        subcategory="Clean Classroom",
        location="Lab 2",
        status="Open",
    )
    db.add(shared)
    db.flush()
    db.add(ActivityAssignment(activity_id=shared.id, user_id=maintenance_worker.id, assignment_type="secondary"))
    db.commit()

    response = await client.post(WEBHOOK, data=form("/assigned", maintenance_worker.phone_number))

    assert "Assigned to You (2)" in response.text
    assert "Fix Door" in response.text
    assert "Clean Classroom" in response.text
    assert "Reporter: Tom Teacher" in response.text


@pytest.mark.asyncio
async def test_assigned_filters_by_status(client: AsyncClient, maintenance_worker: User, assigned_task: Activity):
    response = await client.post(WEBHOOK, data=form("/assigned resolved", maintenance_worker.phone_number))

    assert "No assigned tasks" in response.text


@pytest.mark.asyncio
async def test_complete_resolves_task_and_tells_reporter(
    client: AsyncClient,
    db: Session,
    teacher: User,
    maintenance_worker: User,
    assigned_task: Activity,
    broadcaster,
    twilio_client,
):
    connection = broadcaster.open_connection()
    connection.queue.get_nowait()
    reference = f"MAIN-{assigned_task.id[-4:]}"

    response = await client.post(
        WEBHOOK, data=form(f"/complete {reference} Replaced the hinge", maintenance_worker.phone_number)
    )

    assert response.status_code == 200
    assert "Task Completed" in response.text
    assert "Resolution: Replaced the hinge" in response.text

    db.expire_all()
    activity = db.get(Activity, assigned_task.id)
    assert activity.status == "Resolved"
    assert activity.resolution_notes == "Replaced the hinge"
    assert db.query(Activity).count() == 1
    assert db.query(WhatsAppMessage).one().related_activity_id == assigned_task.id

    frame = connection.queue.get_nowait()
    assert '"type":"activity_updated"' in frame

    await drain()
    to, body = twilio_client.send_message.call_args.args
    assert to == teacher.phone_number
    assert "Open -> Resolved" in body


@pytest.mark.asyncio
async def test_complete_accepts_bare_suffix_with_default_notes(
    client: AsyncClient, db: Session, maintenance_worker: User, assigned_task: Activity
):
    await client.post(WEBHOOK, data=form(f"/complete {assigned_task.id[-4:]}", maintenance_worker.phone_number))

    db.expire_all()
    assert db.get(Activity, assigned_task.id).resolution_notes == "Completed via WhatsApp"


@pytest.mark.asyncio
async def test_complete_only_touches_own_tasks(
    client: AsyncClient, db: Session, admin: User, assigned_task: Activity
):
    response = await client.post(
        WEBHOOK, data=form(f"/complete MAIN-{assigned_task.id[-4:]}", admin.phone_number)
    )

    assert "No open task with reference" in response.text
    db.expire_all()
    assert db.get(Activity, assigned_task.id).status == "Open"


@pytest.mark.asyncio
async def test_complete_without_reference_shows_usage(client: AsyncClient, maintenance_worker: User):
    response = await client.post(WEBHOOK, data=form("/complete", maintenance_worker.phone_number))

    assert "Usage:" in response.text


@pytest.mark.asyncio
async def test_failure_after_commit_still_replies_with_twiml(
    client: AsyncClient, maintenance: Category, monkeypatch
):
    def broken_reference(*args, **kwargs):
        raise RuntimeError("reference lookup failed")

    monkeypatch.setattr(twilio_webhook, "reference_number", broken_reference)

    response = await client.post(WEBHOOK, data=form("Broken window in room 5", "+15550000042"))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "could not process your message" in response.text
