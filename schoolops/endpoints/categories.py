"""Category endpoints."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from schoolops.config.database import UNPLANNED_CATEGORY_ID, get_db, seed_system_categories
from schoolops.middleware.error_handler import ConflictError, ForbiddenError, NotFoundError, require_id
from schoolops.models import Activity, Category
from schoolops.schemas.categories import (
    CategoryCreate,
    CategoryDeleteResponse,
    CategoryResponse,
    MovedActivity,
)

logger = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=list[CategoryResponse])
async def list_categories(db: Session = Depends(get_db)):
    """List all categories ordered by name."""
    categories = db.query(Category).order_by(Category.name).all()
    return [CategoryResponse.model_validate(c) for c in categories]


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(data: CategoryCreate, db: Session = Depends(get_db)):
    """Create a category; names are unique ignoring case."""
    existing = db.query(Category).filter(func.lower(Category.name) == data.name.lower()).first()
    if existing:
        raise ConflictError("A category with this name already exists", {"field": "name"})

    category = Category(name=data.name, is_system=data.is_system)
    db.add(category)
    db.commit()
    db.refresh(category)

    logger.info("Category created", id=category.id, name=category.name)
    return CategoryResponse.model_validate(category)


@router.delete("/{category_id}", response_model=CategoryDeleteResponse)
async def delete_category(category_id: str, db: Session = Depends(get_db)):
    """Delete a category, moving its activities to the unplanned category."""
    require_id(category_id, "categoryId", allow=(UNPLANNED_CATEGORY_ID,))

    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError("Category", category_id)
    if category.is_system:
        raise ForbiddenError("System categories cannot be deleted")

    seed_system_categories(db)

    activities = db.query(Activity).filter(Activity.category_id == category_id).all()
    moved = []
    for activity in activities:
        activity.category_id = UNPLANNED_CATEGORY_ID
        moved.append(MovedActivity(id=activity.id, category_id=UNPLANNED_CATEGORY_ID))

    db.flush()
    db.delete(category)
    db.commit()

    logger.info("Category deleted", id=category_id, activities_moved=len(moved))
    return CategoryDeleteResponse(
        message=f"Category deleted; {len(moved)} activities moved to Unplanned",
        activities_to_update=moved,
    )
