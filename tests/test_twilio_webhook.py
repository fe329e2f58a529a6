"""Inbound WhatsApp webhook."""

import pytest
from httpx import AsyncClient
from sqlalchemy.orm import Session

from schoolops.endpoints import twilio_webhook
from schoolops.models import Activity, Category, User, WhatsAppMessage

WEBHOOK = "/api/v1/twilio/webhook"


def form(body: str = "Broken window in room 5", sid: str = "SM0001", sender: str = "+15550000042") -> dict:
    return {
        "MessageSid": sid,
        "From": f"whatsapp:{sender}",
        "To": "whatsapp:+14155238886",
        "Body": body,
        "ProfileName": "Pat Porter",
    }


@pytest.mark.asyncio
async def test_message_creates_activity_and_replies(
    client: AsyncClient, db: Session, maintenance: Category, broadcaster
):
    connection = broadcaster.open_connection()
    connection.queue.get_nowait()

    response = await client.post(WEBHOOK, data=form())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "<Response><Message>" in response.text
    assert "Thanks Pat Porter!" in response.text
    assert "Reference: MAIN-" in response.text

    db.expire_all()
    activity = db.query(Activity).one()
    assert activity.status == "Open"
    assert activity.category_id == maintenance.id
    assert activity.location == "Room 5"
    assert activity.reporter.phone_number == "+15550000042"
    assert activity.reporter.role == "Teacher"

    stored = db.query(WhatsAppMessage).one()
    assert stored.processed is True
    assert stored.related_activity_id == activity.id
    assert '"type":"activity_created"' in connection.queue.get_nowait()


@pytest.mark.asyncio
async def test_known_sender_is_reused(client: AsyncClient, db: Session, teacher: User, maintenance: Category):
    response = await client.post(WEBHOOK, data=form(sender=teacher.phone_number))

    assert "Thanks Tom Teacher!" in response.text
    db.expire_all()
    assert db.query(User).count() == 1
    assert db.query(Activity).one().user_id == teacher.id


@pytest.mark.asyncio
async def test_duplicate_delivery_is_ignored(client: AsyncClient, db: Session, maintenance: Category):
    await client.post(WEBHOOK, data=form())
    response = await client.post(WEBHOOK, data=form())

    assert response.status_code == 200
    assert "already been received" in response.text
    db.expire_all()
    assert db.query(Activity).count() == 1


@pytest.mark.asyncio
async def test_empty_body_gets_guidance(client: AsyncClient, db: Session):
    response = await client.post(WEBHOOK, data=form(body="   "))

    assert response.status_code == 200
    assert "Please describe the issue" in response.text
    assert db.query(WhatsAppMessage).count() == 0


@pytest.mark.asyncio
async def test_processing_failure_still_replies_with_twiml(
    client: AsyncClient, db: Session, maintenance: Category, monkeypatch
):
    async def explode(*args, **kwargs):
        raise RuntimeError("parser crashed")

    monkeypatch.setattr(twilio_webhook, "parse_message", explode)

    response = await client.post(WEBHOOK, data=form())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "could not process your message" in response.text
    db.expire_all()
    assert db.query(Activity).count() == 0
    assert db.query(WhatsAppMessage).count() == 0


@pytest.mark.asyncio
async def test_stored_messages_are_listed(client: AsyncClient, maintenance: Category):
    await client.post(WEBHOOK, data=form())

    response = await client.get("/api/v1/whatsapp-messages", params={"direction": "inbound"})

    body = response.json()
    assert response.status_code == 200
    assert body["meta"]["total"] == 1
    assert body["data"][0]["waId"] == "SM0001"
    assert body["data"][0]["fromNumber"] == "+15550000042"
