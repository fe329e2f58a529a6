"""ActivityUpdate model - append-only progress trail for an activity."""

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from schoolops.models.base import Base, generate_cuid, utcnow

VALID_UPDATE_TYPES = ("progress", "status_change", "assignment", "completion")


class ActivityUpdate(Base):
    """
    Progress note attached to an activity.

    Rows are never edited; they are removed only with their activity.
    """

    __tablename__ = "activity_updates"

    id = Column(String(25), primary_key=True, default=generate_cuid)

    activity_id = Column(
        String(25),
        ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id = Column(
        String(25),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    notes = Column(Text, nullable=False)
    photo_url = Column(String(1000), nullable=True)

    # Status the activity had when the note was written
    status_context = Column(String(20), nullable=True)
    update_type = Column(String(20), default="progress", nullable=False)

    __table_args__ = (
        Index("idx_activity_updates_activity", "activity_id"),
    )

    activity = relationship("Activity", back_populates="updates")
    author = relationship("User")

    def __repr__(self) -> str:
        return f"<ActivityUpdate(id={self.id}, type={self.update_type})>"
