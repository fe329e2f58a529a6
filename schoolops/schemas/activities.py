"""Pydantic schemas for Activity endpoints."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field, model_validator

from schoolops.models.activities import ActivityStatus

from .base import CamelModel


class ActivityUpdateItem(CamelModel):
    """Schema for a progress note in an activity response."""

    id: str
    timestamp: datetime
    notes: str
    photo_url: Optional[str] = None
    author_id: str
    status_context: Optional[str] = None
    update_type: str = "progress"


class ActivityCreate(CamelModel):
    """Schema for logging a new activity.

    The category can be given by id or, for free-form clients, by name.
    """

    user_id: Optional[str] = Field(default=None, min_length=1)
    category_id: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    subcategory: str = Field(min_length=1, max_length=100)
    location: str = Field(min_length=1, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)
    photo_url: Optional[str] = Field(default=None, max_length=1000)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    status: Optional[ActivityStatus] = None
    assigned_to_user_id: Optional[str] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def require_category(self) -> "ActivityCreate":
        if not self.category_id and not self.category:
            raise ValueError("Either categoryId or category is required")
        self.subcategory = self.subcategory.strip()
        self.location = self.location.strip()
        return self


class ActivityFullUpdate(CamelModel):
    """Payload for a full_update: replaces the descriptive fields."""

    user_id: Optional[str] = Field(default=None, min_length=1)
    category_id: Optional[str] = Field(default=None, min_length=1)
    subcategory: Optional[str] = Field(default=None, min_length=1, max_length=100)
    location: Optional[str] = Field(default=None, min_length=1, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)
    photo_url: Optional[str] = Field(default=None, max_length=1000)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "ActivityFullUpdate":
        # These may be omitted but never cleared
        for name in ("category_id", "subcategory", "location"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class ActivityStatusUpdate(CamelModel):
    """Payload for a status_update: task-management changes."""

    status: Optional[ActivityStatus] = None
    resolution_notes: Optional[str] = Field(default=None, max_length=1000)
    assign_to_user_id: Optional[str] = Field(default=None, min_length=1)
    instructions: Optional[str] = Field(default=None, max_length=500)
    changed_by: Optional[str] = None


class ActivityChangeRequest(CamelModel):
    """Envelope for PUT /activities/{id}."""

    type: str
    payload: dict[str, Any]


class ActivityResponse(CamelModel):
    """Schema for activity detail response."""

    id: str
    user_id: Optional[str] = None
    category_id: str
    subcategory: str
    location: str
    timestamp: datetime
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str
    assigned_to_user_id: Optional[str] = None
    assignment_instructions: Optional[str] = None
    resolution_notes: Optional[str] = None
    updates: list[ActivityUpdateItem] = []


class ActivityListItem(CamelModel):
    """Schema for activity in list response."""

    id: str
    user_id: Optional[str] = None
    reporter_name: Optional[str] = None
    category_id: str
    category_name: Optional[str] = None
    subcategory: str
    location: str
    timestamp: datetime
    status: str
    assigned_to_user_id: Optional[str] = None
    assigned_to_name: Optional[str] = None


class ActivityUpdateCreate(CamelModel):
    """Schema for appending a progress note."""

    notes: str = Field(min_length=1, max_length=1000)
    photo_url: Optional[str] = Field(default=None, max_length=1000)
    author_id: str = Field(min_length=1)
    status_context: Optional[str] = None
    update_type: Literal["progress", "status_change", "assignment", "completion"] = "progress"
