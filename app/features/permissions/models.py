"""
Role and resource grant models.

A role stores one permission per module as a JSON object:
    {"permission_level": "all" | "update" | "view",
     "access_level": "all" | "partial" | "none"}
SQL NULL means the role has no permission for that module.

Super admin is never stored; it is derived from the role's permissions.
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class UserRole(Base, TimestampMixin):
    """
    Role shared by many users.

    Examples: Super Admin, Portfolio Manager, Property Manager, External Owner
    """
    __tablename__ = "user_roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Client / stakeholder role rather than staff
    is_external: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Bypasses the global report restriction
    can_access_mis: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Per-module permissions
    portfolio_permission: Mapped[Dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    property_permission: Mapped[Dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    audit_permission: Mapped[Dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    user_permission: Mapped[Dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    system_settings_permission: Mapped[Dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    bank_details_permission: Mapped[Dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)

    def __repr__(self) -> str:
        return f"<UserRole(id={self.id}, name={self.name!r}, external={self.is_external})>"


class ResourceGrant(Base, TimestampMixin):
    """
    Resources a user may act on in one module when their access is partial.

    One row per (user, module); grant and revoke rewrite that single row.
    """
    __tablename__ = "resource_grants"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    module: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "module", name="uq_resource_grants_user_module"),
    )

    def __repr__(self) -> str:
        return f"<ResourceGrant(user_id={self.user_id}, module={self.module}, count={len(self.resource_ids or [])})>"
