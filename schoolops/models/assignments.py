"""ActivityAssignment model - links responsible users to an activity."""

from sqlalchemy import Column, String, DateTime, Text, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from schoolops.models.base import Base, generate_cuid, utcnow

VALID_ASSIGNMENT_TYPES = ("primary", "secondary", "observer")
VALID_ASSIGNMENT_STATUSES = ("active", "inactive", "completed")


class ActivityAssignment(Base):
    """
    One row per (activity, user) pair.

    The unique constraint backs the 409 returned for duplicate assignments.
    """

    __tablename__ = "activity_assignments"

    id = Column(String(25), primary_key=True, default=generate_cuid)

    activity_id = Column(
        String(25),
        ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(
        String(25),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    assigned_by = Column(
        String(25),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    assigned_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    assignment_type = Column(String(20), default="primary", nullable=False)
    status = Column(String(20), default="active", nullable=False)
    role_instructions = Column(Text, nullable=True)
    receive_notifications = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("activity_id", "user_id", name="uq_activity_user_assignment"),
    )

    activity = relationship("Activity", back_populates="assignments")
    assigned_user = relationship("User", foreign_keys=[user_id])
    assigned_by_user = relationship("User", foreign_keys=[assigned_by])

    def __repr__(self) -> str:
        return f"<ActivityAssignment(id={self.id}, type={self.assignment_type})>"
