"""Activity endpoints: logging, listing, status changes and progress notes."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from schoolops.config.database import UNPLANNED_CATEGORY_ID, get_db, seed_system_categories
from schoolops.middleware.error_handler import BadRequestError, NotFoundError, require_id
from schoolops.models import Activity, ActivityUpdate, Category, User
from schoolops.models.activities import ActivityStatus
from schoolops.schemas.activities import (
    ActivityChangeRequest,
    ActivityCreate,
    ActivityFullUpdate,
    ActivityListItem,
    ActivityResponse,
    ActivityStatusUpdate,
    ActivityUpdateCreate,
)
from schoolops.schemas.base import PaginatedResponse, paginate
from schoolops.services.activity_status import apply_status_update
from schoolops.services.background import spawn_detached
from schoolops.services.broadcaster import EventBroadcaster, get_broadcaster
from schoolops.services.event_publisher import EventPublisher
from schoolops.services.notifier import ActivitySnapshot, WhatsAppNotifier, get_notifier

logger = structlog.get_logger()
router = APIRouter()

CHANGE_TYPES = ("full_update", "status_update")


def get_activity_or_404(db: Session, activity_id: str) -> Activity:
    require_id(activity_id, "activityId")
    activity = (
        db.query(Activity)
        .options(
            joinedload(Activity.category),
            joinedload(Activity.reporter),
            joinedload(Activity.assigned_to),
        )
        .filter(Activity.id == activity_id)
        .first()
    )
    if not activity:
        raise NotFoundError("Activity", activity_id)
    return activity


def _require_user(db: Session, user_id: str, field: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id, field)
    return user


def _resolve_category(db: Session, category_id: Optional[str], category_name: Optional[str]) -> str:
    """Category by id (must exist) or by name (unknown names go to Unplanned)."""
    if category_id:
        if not db.query(Category).filter(Category.id == category_id).first():
            raise NotFoundError("Category", category_id)
        return category_id

    match = (
        db.query(Category)
        .filter(
            (func.lower(Category.name) == category_name.strip().lower())
            | (Category.id == category_name.strip())
        )
        .first()
    )
    if match:
        return match.id

    logger.info("Unknown category name, filing as unplanned", category=category_name)
    seed_system_categories(db)
    return UNPLANNED_CATEGORY_ID


def _to_list_item(activity: Activity) -> ActivityListItem:
    return ActivityListItem(
        id=activity.id,
        user_id=activity.user_id,
        reporter_name=activity.reporter.name if activity.reporter else None,
        category_id=activity.category_id,
        category_name=activity.category.name if activity.category else None,
        subcategory=activity.subcategory,
        location=activity.location,
        timestamp=activity.timestamp,
        status=activity.status,
        assigned_to_user_id=activity.assigned_to_user_id,
        assigned_to_name=activity.assigned_to.name if activity.assigned_to else None,
    )


@router.get("", response_model=PaginatedResponse[ActivityListItem])
async def list_activities(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: Optional[ActivityStatus] = Query(None),
    category_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
):
    """List activities, newest first."""
    query = db.query(Activity)

    if status is not None:
        query = query.filter(Activity.status == status.value)
    if category_id:
        query = query.filter(Activity.category_id == category_id)
    if user_id:
        query = query.filter(
            (Activity.user_id == user_id) | (Activity.assigned_to_user_id == user_id)
        )

    activities, meta = paginate(
        query.options(
            joinedload(Activity.category),
            joinedload(Activity.reporter),
            joinedload(Activity.assigned_to),
        ).order_by(Activity.timestamp.desc()),
        page,
        limit,
    )
    return PaginatedResponse(data=[_to_list_item(a) for a in activities], meta=meta)


@router.post("", response_model=ActivityResponse, status_code=201)
async def create_activity(
    data: ActivityCreate,
    db: Session = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    """Log a new activity. Without an assignee it starts Unassigned."""
    if data.user_id:
        _require_user(db, data.user_id, "userId")
    if data.assigned_to_user_id:
        _require_user(db, data.assigned_to_user_id, "assignedToUserId")

    category_id = _resolve_category(db, data.category_id, data.category)

    assignee_id = data.assigned_to_user_id
    if data.status is not None:
        status = data.status.value
    elif assignee_id:
        status = ActivityStatus.OPEN.value
    else:
        status = ActivityStatus.UNASSIGNED.value

    # An Unassigned activity never carries an assignee
    if status == ActivityStatus.UNASSIGNED.value:
        assignee_id = None

    activity = Activity(
        user_id=data.user_id,
        category_id=category_id,
        subcategory=data.subcategory,
        location=data.location,
        notes=data.notes,
        photo_url=data.photo_url,
        latitude=data.latitude,
        longitude=data.longitude,
        status=status,
        assigned_to_user_id=assignee_id,
    )
    db.add(activity)
    db.commit()

    activity = get_activity_or_404(db, activity.id)
    logger.info("Activity created", id=activity.id, category_id=category_id, status=status)

    EventPublisher(broadcaster).activity_created(activity)
    if activity.assigned_to_user_id:
        spawn_detached(
            notifier.notify_assignment(ActivitySnapshot.from_activity(activity)),
            operation="notify_assignment",
        )

    return ActivityResponse.model_validate(activity)


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(activity_id: str, db: Session = Depends(get_db)):
    """Get an activity with its progress notes."""
    return ActivityResponse.model_validate(get_activity_or_404(db, activity_id))


@router.put("/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: str,
    request: ActivityChangeRequest,
    db: Session = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    """
    Change an activity.

    Body: {"type": "full_update" | "status_update", "payload": {...}}
    """
    if request.type not in CHANGE_TYPES:
        raise BadRequestError(
            f"Invalid update type '{request.type}'",
            {"allowed": list(CHANGE_TYPES)},
        )

    activity = get_activity_or_404(db, activity_id)

    if request.type == "full_update":
        payload = ActivityFullUpdate.model_validate(request.payload)
        update_data = payload.model_dump(exclude_unset=True)

        if update_data.get("user_id"):
            _require_user(db, update_data["user_id"], "userId")
        if update_data.get("category_id"):
            _resolve_category(db, update_data["category_id"], None)

        for key, value in update_data.items():
            setattr(activity, key, value)

        db.commit()
        activity = get_activity_or_404(db, activity_id)
        logger.info("Activity updated", id=activity_id, fields=list(update_data))
        EventPublisher(broadcaster).activity_updated(activity, "general")
        return ActivityResponse.model_validate(activity)

    payload = ActivityStatusUpdate.model_validate(request.payload)
    if payload.assign_to_user_id:
        _require_user(db, payload.assign_to_user_id, "assignToUserId")

    change = apply_status_update(
        activity,
        status=payload.status.value if payload.status else None,
        resolution_notes=payload.resolution_notes,
        assign_to_user_id=payload.assign_to_user_id,
        instructions=payload.instructions,
        unassign="assign_to_user_id" in payload.model_fields_set and payload.assign_to_user_id is None,
    )
    db.commit()

    activity = get_activity_or_404(db, activity_id)
    logger.info(
        "Activity status updated",
        id=activity_id,
        previous_status=change.previous_status,
        new_status=change.new_status,
        assignee_changed=change.assignee_changed,
    )

    EventPublisher(broadcaster).activity_updated(
        activity, "assignment" if change.assignee_changed else "status"
    )

    snapshot = ActivitySnapshot.from_activity(activity)
    if change.assignee_changed and change.new_assignee:
        spawn_detached(notifier.notify_assignment(snapshot), operation="notify_assignment")
    if change.status_changed:
        spawn_detached(
            notifier.notify_status_change(
                snapshot,
                change.previous_status,
                change.new_status,
                activity.resolution_notes,
            ),
            operation="notify_status_change",
        )

    return ActivityResponse.model_validate(activity)


@router.delete("/{activity_id}", status_code=204)
async def delete_activity(activity_id: str, db: Session = Depends(get_db)):
    """Delete an activity with its progress notes and assignments."""
    activity = get_activity_or_404(db, activity_id)
    db.delete(activity)
    db.commit()

    logger.info("Activity deleted", id=activity_id)
    return Response(status_code=204)


@router.post("/{activity_id}/updates", response_model=ActivityResponse, status_code=201)
async def add_activity_update(
    activity_id: str,
    data: ActivityUpdateCreate,
    db: Session = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    """Append a progress note and notify the other party."""
    activity = get_activity_or_404(db, activity_id)
    author = _require_user(db, data.author_id, "authorId")

    update = ActivityUpdate(
        activity_id=activity.id,
        author_id=author.id,
        notes=data.notes,
        photo_url=data.photo_url,
        status_context=data.status_context or activity.status,
        update_type=data.update_type,
    )
    db.add(update)
    db.commit()

    activity = get_activity_or_404(db, activity_id)
    logger.info("Activity update added", activity_id=activity_id, update_type=data.update_type)

    EventPublisher(broadcaster).activity_updated(activity, "general")
    spawn_detached(
        notifier.notify_activity_update(
            ActivitySnapshot.from_activity(activity),
            author_id=author.id,
            author_name=author.name,
            author_phone=author.phone_number,
            notes=data.notes,
            update_type=data.update_type,
            reporter_id=activity.user_id,
            assignee_id=activity.assigned_to_user_id,
        ),
        operation="notify_activity_update",
    )

    return ActivityResponse.model_validate(activity)
