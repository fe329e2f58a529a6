"""Activity assignment endpoints (multiple responsible users per activity)."""

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session, joinedload

from schoolops.config.database import get_db
from schoolops.middleware.error_handler import ConflictError, NotFoundError, require_id
from schoolops.models import ActivityAssignment, User
from schoolops.schemas.assignments import AssignmentCreate, AssignmentResponse, AssignmentUpdate
from schoolops.services.background import spawn_detached
from schoolops.services.broadcaster import EventBroadcaster, get_broadcaster
from schoolops.services.event_publisher import EventPublisher
from schoolops.services.notifier import ActivitySnapshot, WhatsAppNotifier, get_notifier

from .activities import get_activity_or_404

logger = structlog.get_logger()
router = APIRouter()


def _to_response(assignment: ActivityAssignment) -> AssignmentResponse:
    return AssignmentResponse(
        id=assignment.id,
        activity_id=assignment.activity_id,
        user_id=assignment.user_id,
        assigned_at=assignment.assigned_at,
        assigned_by=assignment.assigned_by,
        assignment_type=assignment.assignment_type,
        status=assignment.status,
        role_instructions=assignment.role_instructions,
        receive_notifications=assignment.receive_notifications,
        assigned_user_name=assignment.assigned_user.name if assignment.assigned_user else None,
        assigned_user_role=assignment.assigned_user.role if assignment.assigned_user else None,
        assigned_by_name=assignment.assigned_by_user.name if assignment.assigned_by_user else None,
    )


def get_assignment_or_404(db: Session, activity_id: str, assignment_id: str) -> ActivityAssignment:
    require_id(assignment_id, "assignmentId")
    assignment = (
        db.query(ActivityAssignment)
        .options(
            joinedload(ActivityAssignment.assigned_user),
            joinedload(ActivityAssignment.assigned_by_user),
        )
        .filter(
            ActivityAssignment.id == assignment_id,
            ActivityAssignment.activity_id == activity_id,
        )
        .first()
    )
    if not assignment:
        raise NotFoundError("Assignment", assignment_id)
    return assignment


@router.get("", response_model=list[AssignmentResponse])
async def list_assignments(activity_id: str, db: Session = Depends(get_db)):
    """List assignments for an activity, primary first."""
    get_activity_or_404(db, activity_id)
    assignments = (
        db.query(ActivityAssignment)
        .options(
            joinedload(ActivityAssignment.assigned_user),
            joinedload(ActivityAssignment.assigned_by_user),
        )
        .filter(ActivityAssignment.activity_id == activity_id)
        .order_by(ActivityAssignment.assignment_type, ActivityAssignment.assigned_at)
        .all()
    )
    return [_to_response(a) for a in assignments]


@router.post("", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    activity_id: str,
    data: AssignmentCreate,
    db: Session = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    """Assign a user to an activity; one assignment per (activity, user)."""
    activity = get_activity_or_404(db, activity_id)

    for user_id in (data.user_id, data.assigned_by):
        if not db.query(User).filter(User.id == user_id).first():
            raise NotFoundError("User", user_id)

    existing = (
        db.query(ActivityAssignment)
        .filter(
            ActivityAssignment.activity_id == activity_id,
            ActivityAssignment.user_id == data.user_id,
        )
        .first()
    )
    if existing:
        raise ConflictError(
            "User is already assigned to this activity",
            {"assignmentId": existing.id},
        )

    assignment = ActivityAssignment(activity_id=activity_id, **data.model_dump())
    db.add(assignment)
    db.commit()

    assignment = get_assignment_or_404(db, activity_id, assignment.id)
    logger.info(
        "Assignment created",
        id=assignment.id,
        activity_id=activity_id,
        assignment_type=assignment.assignment_type,
    )

    EventPublisher(broadcaster).assignment_changed(activity_id, "created", assignment)
    if assignment.receive_notifications and assignment.assigned_user:
        snapshot = ActivitySnapshot.from_activity(activity)
        if assignment.role_instructions:
            snapshot.assignment_instructions = assignment.role_instructions
        spawn_detached(
            notifier.notify_assignment(
                snapshot,
                phone=assignment.assigned_user.phone_number,
                title=f"Task Assigned ({assignment.assignment_type})",
            ),
            operation="notify_assignment",
        )

    return _to_response(assignment)


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(activity_id: str, assignment_id: str, db: Session = Depends(get_db)):
    """Get a single assignment."""
    require_id(activity_id, "activityId")
    return _to_response(get_assignment_or_404(db, activity_id, assignment_id))


@router.put("/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    activity_id: str,
    assignment_id: str,
    data: AssignmentUpdate,
    db: Session = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Update an assignment's type, status, instructions or notification flag."""
    require_id(activity_id, "activityId")
    assignment = get_assignment_or_404(db, activity_id, assignment_id)

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in update_data.items():
        setattr(assignment, key, value)

    db.commit()
    assignment = get_assignment_or_404(db, activity_id, assignment_id)

    logger.info("Assignment updated", id=assignment_id, fields=list(update_data))
    EventPublisher(broadcaster).assignment_changed(activity_id, "updated", assignment)
    return _to_response(assignment)


@router.delete("/{assignment_id}", status_code=204)
async def delete_assignment(
    activity_id: str,
    assignment_id: str,
    db: Session = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Remove an assignment."""
    require_id(activity_id, "activityId")
    assignment = get_assignment_or_404(db, activity_id, assignment_id)
    db.delete(assignment)
    db.commit()

    logger.info("Assignment deleted", id=assignment_id, activity_id=activity_id)
    EventPublisher(broadcaster).assignment_changed(activity_id, "deleted", assignment_id=assignment_id)
    return Response(status_code=204)
