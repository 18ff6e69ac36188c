"""
Portfolio SQLAlchemy model.
"""
from sqlalchemy import String, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Portfolio(Base, TimestampMixin):
    """
    A group of properties managed together.

    Attributes:
        id: ULID primary key
        name: Display name
        description: Free-form notes
        created_by_id: User who created the portfolio
    """
    __tablename__ = "portfolios"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    def __repr__(self):
        return f"<Portfolio(id={self.id}, name='{self.name}')>"
