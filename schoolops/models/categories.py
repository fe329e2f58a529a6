"""Category model for activity classification."""

from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship

from schoolops.models.base import BaseModel, generate_cuid


class Category(BaseModel):
    """
    Activity category (Maintenance, Discipline, Sports, ...).

    System categories are seeded by the application and cannot be deleted.
    """

    __tablename__ = "categories"

    id = Column(String(25), primary_key=True, default=generate_cuid)

    name = Column(String(50), nullable=False, unique=True)
    is_system = Column(Boolean, default=False, nullable=False)

    activities = relationship("Activity", back_populates="category")

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name})>"
