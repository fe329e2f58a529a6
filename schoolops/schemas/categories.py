"""Pydantic schemas for Category endpoints."""

from pydantic import Field, field_validator

from .base import CamelModel


class CategoryCreate(CamelModel):
    """Schema for creating a category."""

    name: str = Field(min_length=1, max_length=50)
    is_system: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Category name is required")
        return value


class CategoryResponse(CamelModel):
    """Schema for category response."""

    id: str
    name: str
    is_system: bool


class MovedActivity(CamelModel):
    """Activity moved to the unplanned category."""

    id: str
    category_id: str


class CategoryDeleteResponse(CamelModel):
    """Response for category deletion."""

    message: str
    activities_to_update: list[MovedActivity]
