"""User model for school staff."""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from schoolops.models.base import BaseModel, generate_cuid

VALID_ROLES = ("Teacher", "Admin", "Maintenance", "Support Staff")


class User(BaseModel):
    """
    A staff member who reports or works on activities.

    The phone number doubles as the WhatsApp identity, so it is unique.
    """

    __tablename__ = "users"

    id = Column(String(25), primary_key=True, default=generate_cuid)

    name = Column(String(100), nullable=False)
    phone_number = Column(String(20), nullable=False, unique=True)
    role = Column(String(50), nullable=False)  # Teacher, Admin, Maintenance, Support Staff

    # Relationships
    reported_activities = relationship(
        "Activity",
        back_populates="reporter",
        foreign_keys="Activity.user_id",
    )
    assigned_activities = relationship(
        "Activity",
        back_populates="assigned_to",
        foreign_keys="Activity.assigned_to_user_id",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"
