"""Pydantic schemas for User endpoints."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from .base import CamelModel

UserRole = Literal["Teacher", "Admin", "Maintenance", "Support Staff"]

PHONE_PATTERN = r"^\+[0-9]{10,15}$"


class UserCreate(CamelModel):
    """Schema for creating a user."""

    name: str = Field(min_length=1, max_length=100)
    phone_number: str = Field(pattern=PHONE_PATTERN)
    role: UserRole


class UserUpdate(CamelModel):
    """Schema for updating a user (all fields optional)."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    role: Optional[UserRole] = None


class UserResponse(CamelModel):
    """Schema for user response."""

    id: str
    name: str
    phone_number: str
    role: str
    created_at: Optional[datetime] = None


class ReassignedActivity(CamelModel):
    """Activity whose reporter changed because its user was deleted."""

    id: str
    user_id: Optional[str] = None


class UserDeleteResponse(CamelModel):
    """Response for user deletion."""

    message: str
    activities_to_reassign: list[ReassignedActivity]
