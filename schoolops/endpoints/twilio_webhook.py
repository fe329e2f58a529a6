"""Inbound Twilio WhatsApp webhook.

Slash commands (see services.whatsapp_commands) are answered directly; any
other text becomes an activity.

Every path answers with TwiML so Twilio never retries or shows an error to
the sender.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Form, Request, Response
from sqlalchemy.orm import Session
from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse

from schoolops.config.database import get_db, seed_system_categories
from schoolops.config.settings import settings
from schoolops.middleware.logging import mask_phone
from schoolops.models import Activity, Category, User, WhatsAppMessage
from schoolops.models.activities import ActivityStatus, reference_number
from schoolops.services.ai_factory import resolve_provider_from_config
from schoolops.services.background import spawn_detached
from schoolops.services.broadcaster import EventBroadcaster, get_broadcaster
from schoolops.services.event_publisher import EventPublisher
from schoolops.services.message_parser import parse_message
from schoolops.services.notifier import ActivitySnapshot, WhatsAppNotifier, get_notifier, status_change_message
from schoolops.services.whatsapp_commands import handle_command, is_command

logger = structlog.get_logger()
router = APIRouter()

DEFAULT_ROLE = "Teacher"


def twiml(message: str, status_code: int = 200) -> Response:
    reply = MessagingResponse()
    reply.message(message)
    return Response(content=str(reply), media_type="application/xml", status_code=status_code)


def strip_channel(number: Optional[str]) -> str:
    return (number or "").replace("whatsapp:", "").strip()


async def signature_is_valid(request: Request) -> bool:
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    form = await request.form()
    return validator.validate(
        str(request.url),
        dict(form),
        request.headers.get("X-Twilio-Signature", ""),
    )


def find_or_create_reporter(db: Session, phone: str, profile_name: Optional[str]) -> User:
    user = db.query(User).filter(User.phone_number == phone).first()
    if user:
        return user
    user = User(name=(profile_name or "WhatsApp User")[:100], phone_number=phone, role=DEFAULT_ROLE)
    db.add(user)
    db.flush()
    logger.info("Reporter created from WhatsApp", user_id=user.id, phone=mask_phone(phone))
    return user


@router.post("/webhook")
async def twilio_webhook(
    request: Request,
    message_sid: Optional[str] = Form(None, alias="MessageSid"),
    from_: Optional[str] = Form(None, alias="From"),
    to: Optional[str] = Form(None, alias="To"),
    body: Optional[str] = Form(None, alias="Body"),
    profile_name: Optional[str] = Form(None, alias="ProfileName"),
    db: Session = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    """Answer a slash command, or turn the message into an activity and reply with its reference."""
    if settings.TWILIO_VALIDATE_SIGNATURE and not await signature_is_valid(request):
        logger.warning("Rejected webhook with invalid Twilio signature")
        return twiml("Request could not be verified.", status_code=403)

    sender = strip_channel(from_)
    text = (body or "").strip()

    if not sender:
        logger.warning("Webhook without sender", message_sid=message_sid)
        return twiml("Sorry, we could not identify the sender of this message.")
    if not text:
        return twiml("Please describe the issue or task in your message, including its location.")

    try:
        if message_sid and db.query(WhatsAppMessage).filter(WhatsAppMessage.wa_id == message_sid).first():
            logger.info("Duplicate webhook delivery ignored", message_sid=message_sid)
            return twiml("Your message has already been received.")

        stored = WhatsAppMessage(
            wa_id=message_sid,
            from_number=sender,
            to_number=strip_channel(to) or None,
            content=text,
            profile_name=profile_name,
            direction="inbound",
            status="received",
        )
        db.add(stored)
        db.flush()

        if is_command(text):
            return await _run_command(db, stored, sender, text, broadcaster, notifier)

        reporter = find_or_create_reporter(db, sender, profile_name)

        categories = db.query(Category).order_by(Category.name).all()
        if not categories:
            seed_system_categories(db)
            categories = db.query(Category).all()

        parsed = await parse_message(text, categories, resolve_provider_from_config(db))

        activity = Activity(
            user_id=reporter.id,
            category_id=parsed.category_id,
            subcategory=parsed.subcategory,
            location=parsed.location,
            notes=parsed.notes,
            status=ActivityStatus.OPEN.value,
        )
        db.add(activity)
        db.flush()

        stored.related_activity_id = activity.id
        stored.processed = True
        stored.status = "processed"
        db.commit()

        db.refresh(activity)
        category_name = next((c.name for c in categories if c.id == activity.category_id), None)
        reference = reference_number(activity.id, category_name)
        reply = (
            f"Thanks {reporter.name}! Your report has been logged.\n"
            f"Reference: {reference}\n"
            f"Task: {activity.subcategory}\n"
            f"Location: {activity.location}"
        )
    except Exception as e:
        db.rollback()
        logger.error(
            "WhatsApp webhook processing failed",
            phone=mask_phone(sender),
            error=str(e),
            error_type=type(e).__name__,
        )
        return twiml("Sorry, we could not process your message right now. Please try again later.")

    logger.info(
        "Activity created from WhatsApp",
        activity_id=activity.id,
        reference=reference,
        phone=mask_phone(sender),
        fallback_used=parsed.fallback_used,
    )

    EventPublisher(broadcaster).activity_created(activity)

    return twiml(reply)


async def _run_command(
    db: Session,
    stored: WhatsAppMessage,
    sender: str,
    text: str,
    broadcaster: EventBroadcaster,
    notifier: WhatsAppNotifier,
) -> Response:
    """Commands never create activities; a completed task is published and its reporter told."""
    user = db.query(User).filter(User.phone_number == sender).first()
    result = handle_command(db, user, text)

    stored.processed = True
    stored.status = "command"
    if result.activity is not None:
        stored.related_activity_id = result.activity.id
    db.commit()

    if result.activity is not None and result.change is not None:
        activity = db.query(Activity).filter(Activity.id == result.activity.id).one()
        EventPublisher(broadcaster).activity_updated(activity, "status")
        if result.change.status_changed:
            snapshot = ActivitySnapshot.from_activity(activity)
            spawn_detached(
                notifier.send(
                    snapshot.reporter_phone,
                    status_change_message(
                        snapshot,
                        result.change.previous_status,
                        result.change.new_status,
                        activity.resolution_notes,
                    ),
                    kind="status_change",
                ),
                operation="notify_status_change",
            )

    return twiml(result.reply)
