"""
Declarative base shared by every table.

Primary keys are ULID strings (26 characters, sortable by creation time).
"""
from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import ulid


def generate_ulid() -> str:
    return ulid.new().str


class Base(DeclarativeBase):
    """Roles, users, resource grants, portfolios and properties all register here."""
    pass


class TimestampMixin:
    """Server-side created_at / updated_at columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
