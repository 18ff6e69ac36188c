"""
User model with ULID primary keys.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.permissions.models import UserRole


class User(Base, TimestampMixin):
    """
    User model representing invited users.
    
    Authorization comes entirely from the assigned role plus resource grants;
    there is no per-user admin flag.
    """
    __tablename__ = "users"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    language: Mapped[str] = mapped_column(String(10), default="en", nullable=False)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    user_role_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("user_roles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    invited_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    
    role: Mapped[UserRole | None] = relationship(
        UserRole,
        foreign_keys=[user_role_id],
        lazy="selectin"
    )
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
