"""Slash commands sent over WhatsApp.

Messages starting with "/" are commands and never become activities:

    /help                     list commands
    /status                   account summary and latest reports
    /myreports [n]            your latest reports (max 20)
    /assigned [status]        tasks assigned to you, optionally by status
    /complete <ref> [notes]   resolve a task assigned to you
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload

from schoolops.middleware.logging import mask_phone
from schoolops.models import Activity, ActivityAssignment, User
from schoolops.models.activities import ActivityStatus
from schoolops.services.activity_status import StatusChange, apply_status_update

logger = structlog.get_logger()

COMMAND_PREFIX = "/"
DEFAULT_REPORT_LIMIT = 10
MAX_REPORT_LIMIT = 20
ASSIGNED_LIMIT = 15
DEFAULT_RESOLUTION = "Completed via WhatsApp"
CLOSED_STATUSES = (ActivityStatus.RESOLVED.value, ActivityStatus.COMPLETED.value)

HELP_TEXT = (
    "*Available commands*\n"
    "\n"
    "/status - your account and latest reports\n"
    "/myreports [n] - your latest reports\n"
    "/assigned [status] - tasks assigned to you\n"
    "/complete <reference> [notes] - mark a task resolved\n"
    "\n"
    "Example: /complete MAIN-a1b2 Replaced the lock\n"
    "\n"
    "Any other message is logged as a new report."
)


@dataclass
class CommandResult:
    """Reply text plus the activity a command changed, if any."""

    reply: str
    activity: Optional[Activity] = None
    change: Optional[StatusChange] = None


def is_command(text: str) -> bool:
    return text.startswith(COMMAND_PREFIX)


def _short_line(activity: Activity) -> str:
    return (
        f"*{activity.subcategory}* ({activity.reference_number})\n"
        f"Location: {activity.location}\n"
        f"Status: {activity.status}\n"
        f"Date: {activity.timestamp:%Y-%m-%d}"
    )


def _assigned_query(db: Session, user: User):
    shared = select(ActivityAssignment.activity_id).where(
        ActivityAssignment.user_id == user.id,
        ActivityAssignment.status == "active",
    )
    return db.query(Activity).options(
        joinedload(Activity.category),
        joinedload(Activity.reporter),
    ).filter(
        or_(Activity.assigned_to_user_id == user.id, Activity.id.in_(shared))
    )


def _reference_suffix(reference: str) -> str:
    """'MAIN-a1b2', 'a1b2' and a full id all reduce to the last four characters."""
    return reference.rsplit("-", 1)[-1][-4:].lower()


def _status(db: Session, user: User) -> str:
    recent = (
        db.query(Activity)
        .options(joinedload(Activity.category))
        .filter(Activity.user_id == user.id)
        .order_by(Activity.timestamp.desc())
        .limit(5)
        .all()
    )
    lines = [
        "*Account Status*",
        f"Name: {user.name}",
        f"Role: {user.role}",
        f"Phone: {mask_phone(user.phone_number)}",
        "",
    ]
    if not recent:
        lines.append("No recent reports")
    else:
        lines.append(f"*Recent Reports ({len(recent)})*")
        lines += [f"- {a.subcategory} ({a.reference_number}): {a.status}" for a in recent]
    return "\n".join(lines)


def _my_reports(db: Session, user: User, args: list[str]) -> str:
    limit = DEFAULT_REPORT_LIMIT
    if args and args[0].isdigit():
        limit = max(1, min(int(args[0]), MAX_REPORT_LIMIT))

    reports = (
        db.query(Activity)
        .options(joinedload(Activity.category))
        .filter(Activity.user_id == user.id)
        .order_by(Activity.timestamp.desc())
        .limit(limit)
        .all()
    )
    if not reports:
        return "*No reports found*\n\nSend a description of an issue to log one."
    return f"*Your Recent Reports ({len(reports)})*\n\n" + "\n\n".join(_short_line(a) for a in reports)


def _assigned(db: Session, user: User, args: list[str]) -> str:
    query = _assigned_query(db, user)
    if args:
        wanted = " ".join(args).strip().lower()
        match = next((s.value for s in ActivityStatus if s.value.lower() == wanted), None)
        if match is None:
            return f'Unknown status "{wanted}". Try /assigned open or /assigned resolved.'
        query = query.filter(Activity.status == match)

    tasks = query.order_by(Activity.timestamp.desc()).limit(ASSIGNED_LIMIT).all()
    if not tasks:
        return "*No assigned tasks*\n\nYou have no assigned tasks at the moment."

    blocks = []
    for activity in tasks:
        reporter = activity.reporter.name if activity.reporter else "Unknown"
        blocks.append(f"{_short_line(activity)}\nReporter: {reporter}")
    return f"*Assigned to You ({len(tasks)})*\n\n" + "\n\n".join(blocks)


def _complete(db: Session, user: User, args: list[str]) -> CommandResult:
    if not args:
        return CommandResult(
            "*Usage:* /complete <reference> [notes]\n\nExample: /complete MAIN-a1b2 Replaced the lock"
        )

    reference = args[0]
    notes = " ".join(args[1:]).strip() or DEFAULT_RESOLUTION
    suffix = _reference_suffix(reference)

    open_tasks = _assigned_query(db, user).filter(Activity.status.notin_(CLOSED_STATUSES)).all()
    matches = [a for a in open_tasks if a.id == reference] or [
        a for a in open_tasks if a.id[-4:].lower() == suffix
    ]

    if not matches:
        return CommandResult(f'No open task with reference "{reference}" is assigned to you.')
    if len(matches) > 1:
        refs = ", ".join(a.id for a in matches)
        return CommandResult(f'Reference "{reference}" matches several tasks ({refs}). Send the full id.')

    activity = matches[0]
    change = apply_status_update(activity, status=ActivityStatus.RESOLVED.value, resolution_notes=notes)
    logger.info(
        "Task completed via WhatsApp",
        activity_id=activity.id,
        completed_by=user.id,
        previous_status=change.previous_status,
    )
    return CommandResult(
        f"*Task Completed*\n\n"
        f"Reference: {activity.reference_number}\n"
        f"Location: {activity.location}\n"
        f"Resolution: {notes}\n\n"
        "Thank you!",
        activity=activity,
        change=change,
    )


def handle_command(db: Session, user: Optional[User], text: str) -> CommandResult:
    """
    Run one command for `user` (None when the number is unknown).

    Changes are left uncommitted; the caller commits.
    """
    name, *args = text[len(COMMAND_PREFIX):].split() or [""]
    name = name.lower()

    if name in ("help", ""):
        return CommandResult(HELP_TEXT)

    if user is None:
        return CommandResult(
            "Your number is not registered yet. Send a description of an issue to log "
            "your first report, or /help for commands."
        )

    logger.info("WhatsApp command", command=name, user_id=user.id)

    if name == "status":
        return CommandResult(_status(db, user))
    if name == "myreports":
        return CommandResult(_my_reports(db, user, args))
    if name == "assigned":
        return CommandResult(_assigned(db, user, args))
    if name == "complete":
        return _complete(db, user, args)

    return CommandResult(f"Unknown command: /{name}. Send /help for available commands.")
