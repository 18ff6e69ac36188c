"""
Property SQLAlchemy model.
"""
from sqlalchemy import String, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Property(Base, TimestampMixin):
    """
    A managed property belonging to one portfolio.

    Attributes:
        id: ULID primary key
        name: Display name
        address: Street address
        owner_name: Owner of record
        portfolio_id: Portfolio the property belongs to
        created_by_id: User who created the property
    """
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500))
    owner_name: Mapped[str | None] = mapped_column(String(255))
    portfolio_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("portfolios.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    created_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    __table_args__ = (
        Index("ix_properties_portfolio_name", "portfolio_id", "name"),
    )

    def __repr__(self):
        return f"<Property(id={self.id}, name='{self.name}')>"
