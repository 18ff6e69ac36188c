"""
Seed script to populate default roles.

Run this script after database initialization to:
- Create the default roles
- Backfill bank_details_permission on roles created before the bank details
  module existed

Usage:
    uv run python -m scripts.seed_roles
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.permissions.constants import AccessLevel, PermissionLevel
from app.features.permissions.models import UserRole
from app.features.permissions.schemas import NO_ACCESS, ModulePermission, RoleCreate
from app.utils import get_logger


log = get_logger(__name__)


def _permission(level: PermissionLevel, access: AccessLevel) -> dict:
    return {"permission_level": level.value, "access_level": access.value}


FULL = _permission(PermissionLevel.ALL, AccessLevel.ALL)
NONE = NO_ACCESS.model_dump(mode="json")


DEFAULT_ROLES = {
    "Super Admin": {
        "description": "Full access to every module",
        "can_access_mis": True,
        "portfolio_permission": FULL,
        "property_permission": FULL,
        "audit_permission": FULL,
        "user_permission": FULL,
        "system_settings_permission": FULL,
        "bank_details_permission": FULL,
    },
    "Portfolio Manager": {
        "description": "Manages assigned portfolios and their properties",
        "portfolio_permission": _permission(PermissionLevel.UPDATE, AccessLevel.PARTIAL),
        "property_permission": _permission(PermissionLevel.ALL, AccessLevel.PARTIAL),
        "audit_permission": _permission(PermissionLevel.UPDATE, AccessLevel.PARTIAL),
        "user_permission": _permission(PermissionLevel.UPDATE, AccessLevel.PARTIAL),
        "system_settings_permission": NONE,
        "bank_details_permission": _permission(PermissionLevel.VIEW, AccessLevel.PARTIAL),
    },
    "Property Manager": {
        "description": "Manages assigned properties",
        "portfolio_permission": _permission(PermissionLevel.VIEW, AccessLevel.PARTIAL),
        "property_permission": _permission(PermissionLevel.UPDATE, AccessLevel.PARTIAL),
        "audit_permission": _permission(PermissionLevel.UPDATE, AccessLevel.PARTIAL),
        "user_permission": NONE,
        "system_settings_permission": NONE,
        "bank_details_permission": _permission(PermissionLevel.VIEW, AccessLevel.PARTIAL),
    },
    "Auditor": {
        "description": "Read-only access to audits on every property",
        "portfolio_permission": _permission(PermissionLevel.VIEW, AccessLevel.ALL),
        "property_permission": _permission(PermissionLevel.VIEW, AccessLevel.ALL),
        "audit_permission": _permission(PermissionLevel.UPDATE, AccessLevel.ALL),
        "user_permission": NONE,
        "system_settings_permission": NONE,
        "bank_details_permission": NONE,
    },
    "External Owner": {
        "description": "Property owner with read access to their own properties",
        "is_external": True,
        "portfolio_permission": NONE,
        "property_permission": _permission(PermissionLevel.VIEW, AccessLevel.PARTIAL),
        "audit_permission": _permission(PermissionLevel.VIEW, AccessLevel.PARTIAL),
        "user_permission": NONE,
        "system_settings_permission": NONE,
        "bank_details_permission": _permission(PermissionLevel.VIEW, AccessLevel.PARTIAL),
    },
}


async def seed_roles(db: AsyncSession) -> int:
    """
    Create default roles that do not exist yet.

    Returns:
        Number of roles created
    """
    log.info("Creating default roles...")
    created = 0

    for role_name, role_config in DEFAULT_ROLES.items():
        # Check if role already exists
        stmt = select(UserRole).where(UserRole.name == role_name)
        result = await db.execute(stmt)
        existing = result.scalars().first()

        if existing:
            log.debug(f"Role '{role_name}' already exists, skipping")
            continue

        role = RoleCreate(name=role_name, **role_config)
        db.add(UserRole(**role.model_dump(mode="json")))
        created += 1
        log.info(f"Created role '{role_name}'")

    await db.commit()
    log.info(f"Created {created} default roles")
    return created


def bank_details_backfill(property_permission: dict | None) -> dict:
    """
    Bank details permission for a role that has none.

    Copies the role's property permission, falling back to (view, none)
    when that is missing or malformed.
    """
    if property_permission is None:
        return dict(NONE)
    try:
        return ModulePermission.model_validate(property_permission).model_dump(mode="json")
    except ValueError:
        log.warning(f"Malformed property_permission {property_permission!r}, using no access")
        return dict(NONE)


async def backfill_bank_details_permission(db: AsyncSession) -> int:
    """
    Give every role without a bank_details_permission one derived from its
    property permission.

    Returns:
        Number of roles updated
    """
    log.info("Backfilling bank_details_permission...")
    result = await db.execute(
        select(UserRole).where(UserRole.bank_details_permission.is_(None))
    )
    roles = result.scalars().all()

    for role in roles:
        role.bank_details_permission = bank_details_backfill(role.property_permission)
        log.info(f"Role '{role.name}': bank_details_permission set to {role.bank_details_permission}")

    await db.commit()
    log.info(f"Backfilled {len(roles)} roles")
    return len(roles)


async def main():
    """Main function to seed roles."""
    log.info("Starting role seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    # Get database session
    async for db in get_db():
        try:
            await seed_roles(db)
            await backfill_bank_details_permission(db)

            log.info("Role seeding completed successfully!")
            log.info("")
            log.info("Default roles:")
            for role_name, role_config in DEFAULT_ROLES.items():
                log.info(f"  - {role_name}: {role_config['description']}")

        except Exception as e:
            log.error(f"Error seeding roles: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
