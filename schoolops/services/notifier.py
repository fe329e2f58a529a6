"""WhatsApp notifications for assignment, status and progress changes.

Every send is attempted once. Failures are logged with a masked phone number
and returned as a failed NotificationResult; nothing is raised to the caller.
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog

from schoolops.config.settings import settings
from schoolops.integrations.twilio_whatsapp import TwilioWhatsAppClient
from schoolops.middleware.logging import mask_phone
from schoolops.models import Activity
from schoolops.models.activities import reference_number

logger = structlog.get_logger()

MIN_PHONE_DIGITS = 10
NOTES_PREVIEW_LENGTH = 200


@dataclass
class NotificationResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ActivitySnapshot:
    """Detached copy of the fields notifications need.

    Notifications run after the request's session is closed, so they never
    touch ORM instances.
    """

    id: str
    category_name: Optional[str]
    subcategory: str
    location: str
    status: str
    timestamp: Optional[datetime] = None
    notes: Optional[str] = None
    assignment_instructions: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_phone: Optional[str] = None
    assignee_name: Optional[str] = None
    assignee_phone: Optional[str] = None

    @property
    def reference_number(self) -> str:
        return reference_number(self.id, self.category_name)

    @classmethod
    def from_activity(cls, activity: Activity) -> "ActivitySnapshot":
        return cls(
            id=activity.id,
            category_name=activity.category.name if activity.category else None,
            subcategory=activity.subcategory,
            location=activity.location,
            status=activity.status,
            timestamp=activity.timestamp,
            notes=activity.notes,
            assignment_instructions=activity.assignment_instructions,
            reporter_name=activity.reporter.name if activity.reporter else None,
            reporter_phone=activity.reporter.phone_number if activity.reporter else None,
            assignee_name=activity.assigned_to.name if activity.assigned_to else None,
            assignee_phone=activity.assigned_to.phone_number if activity.assigned_to else None,
        )


def clean_phone(phone: Optional[str]) -> Optional[str]:
    """Keep '+' and digits; None when too short to be a real number."""
    if not phone:
        return None
    cleaned = re.sub(r"[^\d+]", "", phone.replace("whatsapp:", ""))
    if len(re.sub(r"\D", "", cleaned)) < MIN_PHONE_DIGITS:
        return None
    return cleaned


def assignment_message(activity: ActivitySnapshot, title: str = "New Task Assigned") -> str:
    lines = [
        f"*{title}*",
        "",
        f"Reference: {activity.reference_number}",
        f"Category: {activity.category_name or 'Unknown'} - {activity.subcategory}",
        f"Location: {activity.location}",
        f"Reported by: {activity.reporter_name or 'Unknown'}",
    ]
    if activity.timestamp:
        lines.append(f"Created: {activity.timestamp:%Y-%m-%d %H:%M}")
    if activity.assignment_instructions:
        lines += ["", "Instructions:", activity.assignment_instructions]
    if activity.notes:
        preview = activity.notes[:NOTES_PREVIEW_LENGTH]
        if len(activity.notes) > NOTES_PREVIEW_LENGTH:
            preview += "..."
        lines += ["", "Details:", preview]
    lines += [
        "",
        "Next steps:",
        "- Reply /assigned to list your open tasks",
        f"- Reply /complete {activity.reference_number} <notes> when finished",
    ]
    return "\n".join(lines)


def status_change_message(
    activity: ActivitySnapshot,
    old_status: str,
    new_status: str,
    resolution_notes: Optional[str] = None,
) -> str:
    lines = [
        f"*Status Update: {activity.reference_number}*",
        "",
        f"Task: {activity.subcategory}",
        f"Location: {activity.location}",
        f"Status: {old_status} -> {new_status}",
    ]
    if resolution_notes:
        lines.append(f"Resolution: {resolution_notes}")
    return "\n".join(lines)


def activity_update_message(
    activity: ActivitySnapshot,
    author_name: Optional[str],
    notes: str,
    update_type: str,
) -> str:
    status_line = "Status: Task completed" if update_type == "completion" else "Status: In progress"
    return "\n".join(
        [
            f"*Update: {activity.reference_number}*",
            "",
            f"Task: {activity.subcategory}",
            f"Location: {activity.location}",
            f"Updated by: {author_name or 'System'}",
            "",
            "Update:",
            notes,
            "",
            status_line,
        ]
    )


class WhatsAppNotifier:
    """Renders and sends WhatsApp notifications."""

    def __init__(self, client: Optional[TwilioWhatsAppClient] = None, enabled: Optional[bool] = None):
        self.client = client or TwilioWhatsAppClient()
        self.enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled

    async def send(self, phone: Optional[str], body: str, kind: str) -> NotificationResult:
        """Send one message; never raises."""
        if not self.enabled:
            return NotificationResult(success=False, error="Notifications disabled")

        to = clean_phone(phone)
        if to is None:
            logger.warning("Skipping notification, invalid phone number", kind=kind, phone=mask_phone(phone))
            return NotificationResult(success=False, error="Invalid phone number")

        try:
            message_id = await asyncio.to_thread(self.client.send_message, to, body)
        except Exception as e:
            logger.error("Notification failed", kind=kind, phone=mask_phone(to), error=str(e))
            return NotificationResult(success=False, error=str(e))

        logger.info("Notification sent", kind=kind, phone=mask_phone(to), message_id=message_id)
        return NotificationResult(success=True, message_id=message_id)

    async def notify_assignment(
        self,
        activity: ActivitySnapshot,
        phone: Optional[str] = None,
        title: str = "New Task Assigned",
    ) -> NotificationResult:
        return await self.send(
            phone or activity.assignee_phone,
            assignment_message(activity, title),
            kind="assignment",
        )

    async def notify_status_change(
        self,
        activity: ActivitySnapshot,
        old_status: str,
        new_status: str,
        resolution_notes: Optional[str] = None,
    ) -> list[NotificationResult]:
        """Tell the reporter, and the assignee when they did not make the change."""
        body = status_change_message(activity, old_status, new_status, resolution_notes)
        results = [await self.send(activity.reporter_phone, body, kind="status_change")]
        if activity.assignee_phone and activity.assignee_phone != activity.reporter_phone:
            results.append(await self.send(activity.assignee_phone, body, kind="status_change"))
        return results

    async def notify_activity_update(
        self,
        activity: ActivitySnapshot,
        author_id: Optional[str],
        author_name: Optional[str],
        author_phone: Optional[str],
        notes: str,
        update_type: str,
        reporter_id: Optional[str] = None,
        assignee_id: Optional[str] = None,
    ) -> list[NotificationResult]:
        """Notify the counterpart: assignee updates go to the reporter and vice versa."""
        body = activity_update_message(activity, author_name, notes, update_type)
        results = []
        if author_id != reporter_id and activity.reporter_phone and activity.reporter_phone != author_phone:
            results.append(
                await self.send(
                    activity.reporter_phone,
                    f"{body}\n\nThank you for your patience. We'll keep you updated on progress.",
                    kind="activity_update",
                )
            )
        if author_id != assignee_id and activity.assignee_phone and activity.assignee_phone != author_phone:
            results.append(
                await self.send(
                    activity.assignee_phone,
                    f"{body}\n\nThe reporter has provided additional information. Please review and update accordingly.",
                    kind="activity_update",
                )
            )
        return results


def get_notifier() -> WhatsAppNotifier:
    """FastAPI dependency (overridden in tests)."""
    return WhatsAppNotifier()
