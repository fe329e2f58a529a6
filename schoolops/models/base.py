"""Base model with common fields and utilities."""

import itertools
import os
import re
import secrets
import socket
import time
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declared_attr

from schoolops.config.database import Base

BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
CUID_PATTERN = re.compile(r"^c[a-z0-9]{24}$")

_counter = itertools.count()


def _base36(value: int, width: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36[rem])
    encoded = "".join(reversed(digits)) or "0"
    return encoded.rjust(width, "0")[-width:]


def _fingerprint() -> str:
    pid = _base36(os.getpid(), 2)
    host = socket.gethostname()
    host_id = _base36(sum(ord(ch) for ch in host) + len(host) + 36, 2)
    return pid + host_id


_FINGERPRINT = _fingerprint()


def generate_cuid() -> str:
    """Generate a collision-resistant id: 'c' + 24 lowercase base-36 chars.

    Layout: timestamp (8) + counter (4) + host fingerprint (4) + random (8).
    """
    timestamp = _base36(int(time.time() * 1000), 8)
    counter = _base36(next(_counter) % 36**4, 4)
    random_block = "".join(secrets.choice(BASE36) for _ in range(8))
    return f"c{timestamp}{counter}{_FINGERPRINT}{random_block}"


def is_cuid(value: str) -> bool:
    return bool(value) and CUID_PATTERN.match(value) is not None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Mixin that adds created_at and updated_at columns."""

    @declared_attr
    def created_at(cls):
        return Column(
            DateTime(timezone=True),
            default=utcnow,
            nullable=False,
        )

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True),
            default=utcnow,
            onupdate=utcnow,
            nullable=True,
        )


class BaseModel(Base, TimestampMixin):
    """
    Abstract base class for timestamped models.

    Provides:
    - created_at: Timestamp when record was created
    - updated_at: Timestamp when record was last updated
    - to_dict(): Convert model to dictionary
    """

    __abstract__ = True

    def to_dict(self) -> dict[str, Any]:
        """Convert model instance to dictionary."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        """String representation of model."""
        pk = getattr(self, "id", None)
        return f"<{self.__class__.__name__}(id={pk})>"
