"""Shared schema building blocks: camelCase models, pagination, error envelope."""

from typing import Any, Generic, TypeVar

from humps import camelize
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Query

T = TypeVar("T")


def to_camel(string: str) -> str:
    return camelize(string)


class CamelModel(BaseModel):
    """
    Snake_case in Python, camelCase on the wire.

    Input accepts either spelling, so `assigned_to_user_id` and
    `assignedToUserId` populate the same field. ORM rows validate directly
    (`from_attributes`).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaginationMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(page=page, limit=limit, total=total, total_pages=-(-total // limit))


class PaginatedResponse(CamelModel, Generic[T]):
    """`{"data": [...], "meta": {page, limit, total, totalPages}}`"""

    data: list[T]
    meta: PaginationMeta


def paginate(query: Query, page: int, limit: int) -> tuple[list[Any], PaginationMeta]:
    """Count, then fetch one page of an already ordered query."""
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, PaginationMeta.build(page=page, limit=limit, total=total)


class ErrorDetail(CamelModel):
    code: str
    message: str
    details: dict[str, Any] = {}


class ErrorResponse(CamelModel):
    """Body of every 4xx/5xx response produced by the exception handlers."""

    error: ErrorDetail
