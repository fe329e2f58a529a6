"""Pydantic schemas for ActivityAssignment endpoints."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from .base import CamelModel

CUID_REGEX = r"^c[a-z0-9]{24}$"

AssignmentType = Literal["primary", "secondary", "observer"]
AssignmentStatus = Literal["active", "inactive", "completed"]


class AssignmentCreate(CamelModel):
    """Schema for assigning a user to an activity."""

    user_id: str = Field(pattern=CUID_REGEX)
    assigned_by: str = Field(pattern=CUID_REGEX)
    assignment_type: AssignmentType = "primary"
    role_instructions: Optional[str] = Field(default=None, max_length=500)
    receive_notifications: bool = True
    status: AssignmentStatus = "active"


class AssignmentUpdate(CamelModel):
    """Schema for updating an assignment (all fields optional)."""

    assignment_type: Optional[AssignmentType] = None
    role_instructions: Optional[str] = Field(default=None, max_length=500)
    receive_notifications: Optional[bool] = None
    status: Optional[AssignmentStatus] = None


class AssignmentResponse(CamelModel):
    """Schema for assignment response."""

    id: str
    activity_id: str
    user_id: str
    assigned_at: datetime
    assigned_by: Optional[str] = None
    assignment_type: str
    status: str
    role_instructions: Optional[str] = None
    receive_notifications: bool
    assigned_user_name: Optional[str] = None
    assigned_user_role: Optional[str] = None
    assigned_by_name: Optional[str] = None
