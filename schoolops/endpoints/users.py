"""User CRUD endpoints."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from schoolops.config.database import get_db
from schoolops.middleware.error_handler import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    require_id,
)
from schoolops.middleware.logging import mask_phone
from schoolops.models import Activity, ActivityAssignment, ActivityUpdate, User
from schoolops.schemas.users import (
    ReassignedActivity,
    UserCreate,
    UserDeleteResponse,
    UserResponse,
    UserUpdate,
)

logger = structlog.get_logger()
router = APIRouter()


def get_user_or_404(db: Session, user_id: str) -> User:
    require_id(user_id, "userId")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    return user


@router.get("", response_model=list[UserResponse])
async def list_users(db: Session = Depends(get_db)):
    """List all users ordered by name."""
    users = db.query(User).order_by(User.name).all()
    return [UserResponse.model_validate(u) for u in users]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: Session = Depends(get_db)):
    """Get a user by ID."""
    return UserResponse.model_validate(get_user_or_404(db, user_id))


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(data: UserCreate, db: Session = Depends(get_db)):
    """Create a new user."""
    if db.query(User).filter(User.phone_number == data.phone_number).first():
        raise ConflictError("A user with this phone number already exists", {"field": "phoneNumber"})

    user = User(**data.model_dump())
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User created", id=user.id, role=user.role, phone=mask_phone(user.phone_number))
    return UserResponse.model_validate(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: str, data: UserUpdate, db: Session = Depends(get_db)):
    """Update a user."""
    user = get_user_or_404(db, user_id)
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)

    phone = update_data.get("phone_number")
    if phone and phone != user.phone_number:
        if db.query(User).filter(User.phone_number == phone, User.id != user_id).first():
            raise ConflictError("A user with this phone number already exists", {"field": "phoneNumber"})

    if user.role == "Admin" and update_data.get("role", "Admin") != "Admin":
        other_admins = db.query(User).filter(User.role == "Admin", User.id != user_id).count()
        if other_admins == 0:
            raise ForbiddenError("Cannot change the role of the last admin user")

    for key, value in update_data.items():
        setattr(user, key, value)

    db.commit()
    db.refresh(user)

    logger.info("User updated", id=user.id)
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=UserDeleteResponse)
async def delete_user(user_id: str, db: Session = Depends(get_db)):
    """
    Delete a user.

    Reported and assigned activities move to another admin, the user's
    progress notes and assignments are removed. The last admin cannot be
    deleted.
    """
    user = get_user_or_404(db, user_id)

    replacement = (
        db.query(User)
        .filter(User.role == "Admin", User.id != user_id)
        .order_by(User.created_at)
        .first()
    )
    if user.role == "Admin" and replacement is None:
        raise ForbiddenError("Cannot delete the last admin user")

    reported = db.query(Activity).filter(Activity.user_id == user_id).all()
    moved = []
    for activity in reported:
        activity.user_id = replacement.id if replacement else None
        moved.append(ReassignedActivity(id=activity.id, user_id=activity.user_id))

    db.query(Activity).filter(Activity.assigned_to_user_id == user_id).update(
        {"assigned_to_user_id": replacement.id if replacement else None},
        synchronize_session=False,
    )
    db.query(ActivityUpdate).filter(ActivityUpdate.author_id == user_id).delete(synchronize_session=False)
    db.query(ActivityAssignment).filter(ActivityAssignment.user_id == user_id).delete(synchronize_session=False)
    db.query(ActivityAssignment).filter(ActivityAssignment.assigned_by == user_id).update(
        {"assigned_by": None},
        synchronize_session=False,
    )

    db.flush()
    db.delete(user)
    db.commit()

    logger.info("User deleted", id=user_id, activities_reassigned=len(moved))
    return UserDeleteResponse(message="User deleted successfully", activities_to_reassign=moved)
