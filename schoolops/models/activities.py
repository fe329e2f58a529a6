"""Activity model for logged incidents and tasks."""

import enum

from sqlalchemy import Column, String, DateTime, Text, Float, ForeignKey, Index
from sqlalchemy.orm import relationship

from schoolops.models.base import BaseModel, generate_cuid, utcnow


def reference_number(activity_id: str, category_name: str | None) -> str:
    """Category prefix plus the last four characters of the id."""
    prefix = category_name[:4].upper() if category_name else "TASK"
    return f"{prefix}-{activity_id[-4:]}"


class ActivityStatus(str, enum.Enum):
    """Task lifecycle states.

    Main progression: Unassigned -> Open -> Assigned/In Progress -> Resolved/Completed.
    Cancelled and On Hold are side states.
    """

    UNASSIGNED = "Unassigned"
    OPEN = "Open"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    ON_HOLD = "On Hold"


class Activity(BaseModel):
    """
    An incident or task logged by staff, via the dashboard or WhatsApp.
    """

    __tablename__ = "activities"

    id = Column(String(25), primary_key=True, default=generate_cuid)

    # Reporter and classification
    user_id = Column(
        String(25),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,  # dashboard entries may have no reporter
    )
    category_id = Column(
        String(25),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
    )
    subcategory = Column(String(100), nullable=False)
    location = Column(String(100), nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Details
    notes = Column(Text, nullable=True)
    photo_url = Column(String(1000), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Task management
    status = Column(String(20), default=ActivityStatus.UNASSIGNED.value, nullable=False)
    assigned_to_user_id = Column(
        String(25),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    assignment_instructions = Column(Text, nullable=True)
    resolution_notes = Column(Text, nullable=True)

    # Indexes
    __table_args__ = (
        Index("idx_activities_status", "status"),
        Index("idx_activities_timestamp", "timestamp"),
        Index("idx_activities_assigned", "assigned_to_user_id"),
    )

    # Relationships
    reporter = relationship("User", back_populates="reported_activities", foreign_keys=[user_id])
    assigned_to = relationship("User", back_populates="assigned_activities", foreign_keys=[assigned_to_user_id])
    category = relationship("Category", back_populates="activities")
    updates = relationship(
        "ActivityUpdate",
        back_populates="activity",
        cascade="all, delete-orphan",
        order_by="ActivityUpdate.timestamp",
    )
    assignments = relationship(
        "ActivityAssignment",
        back_populates="activity",
        cascade="all, delete-orphan",
    )

    @property
    def reference_number(self) -> str:
        """Short human-facing reference, e.g. MAIN-a1b2."""
        return reference_number(self.id, self.category.name if self.category else None)

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, status={self.status})>"
