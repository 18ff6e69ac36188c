"""
User feature routes.

Inviting users, reading and deactivating them, and managing the resource
grants that narrow a partial-access role.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.constants import AccessLevel, ModuleType, PermissionAction, resolve_module
from app.features.permissions.dependencies import get_permission_service, require_permission
from app.features.permissions.exceptions import AuthorizationError
from app.features.permissions.models import UserRole
from app.features.permissions.schemas import RolePermissions, UserPermissions
from app.features.permissions.service import PermissionService
from app.features.permissions.utils import check_invite_role
from app.features.users.dependencies import get_current_user, get_current_user_permissions
from app.features.users.models import User
from app.features.users.schemas import (
    ResourceAccessResponse,
    ResourceAccessUpdate,
    UserInvite,
    UserResponse,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["users"])

CurrentUser = Annotated[UserPermissions, Depends(get_current_user_permissions)]
Service = Annotated[PermissionService, Depends(get_permission_service)]

# Modules whose grants can be edited through /users/{id}/access
GRANTABLE_MODULES = (ModuleType.PORTFOLIO, ModuleType.PROPERTY, ModuleType.AUDIT, ModuleType.USER)


async def get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


async def ensure_inviter_covers(
    service: PermissionService,
    inviter: UserPermissions,
    module: ModuleType,
    resource_ids: list[str],
) -> None:
    """An inviter can only hand out resources they can reach themselves."""
    accessible = await service.get_accessible_resource_ids(inviter, module)
    missing = [resource_id for resource_id in resource_ids if not accessible.covers(resource_id)]
    if missing:
        raise AuthorizationError(
            f"Access denied: cannot grant {module.value} resources outside your own access: {missing}"
        )


async def read_grants(service: PermissionService, user_id: str) -> dict[ModuleType, list[str]]:
    return {
        module: await service.grant_store.get_resource_ids(user_id, module)
        for module in GRANTABLE_MODULES
    }


def normalize_grant_modules(update: ResourceAccessUpdate) -> dict[ModuleType, list[str]]:
    grants: dict[ModuleType, list[str]] = {}
    for module, resource_ids in update.grants.items():
        owner = resolve_module(module)
        if owner not in GRANTABLE_MODULES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Resource grants are not supported for module {module.value}"
            )
        grants.setdefault(owner, []).extend(resource_ids)
    return grants


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.post("/invite", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def invite_user(
    invite: UserInvite,
    inviter: CurrentUser,
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Invite a user into a role.

    The inviter needs user create permission, must be allowed to invite the
    target role, and may only grant portfolios and properties they can reach.
    Grants are stored only for modules where the target role has partial
    access. An inviter with partial user access is granted the new user.
    """
    service.require_module_permission(inviter, ModuleType.USER, PermissionAction.CREATE)

    result = await db.execute(
        select(UserRole).where(UserRole.id == invite.role_id, UserRole.is_active == True)  # noqa: E712
    )
    role = result.scalar_one_or_none()
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Role not found"
        )

    target = RolePermissions.model_validate(role)
    eligibility = check_invite_role(inviter, target)
    if not eligibility.allowed:
        raise AuthorizationError(eligibility.reason)

    existing = await db.execute(select(User.id).where(User.email == invite.email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )

    requested = {
        ModuleType.PORTFOLIO: invite.portfolio_ids,
        ModuleType.PROPERTY: invite.property_ids,
    }
    grants: dict[ModuleType, list[str]] = {}
    for module, resource_ids in requested.items():
        permission = target.permission_for(module)
        if not resource_ids or permission is None or permission.access_level != AccessLevel.PARTIAL:
            continue
        await ensure_inviter_covers(service, inviter, module, resource_ids)
        grants[module] = resource_ids

    user = User(
        email=invite.email,
        first_name=invite.first_name,
        last_name=invite.last_name,
        language=invite.language,
        user_role_id=role.id,
        invited_by_id=inviter.id,
    )
    db.add(user)
    await db.flush()

    for module, resource_ids in grants.items():
        await service.grant_store.replace_resource_ids(user.id, module, resource_ids)
    await service.grant_created_resource(inviter, ModuleType.USER, user.id)

    await db.commit()
    await db.refresh(user)

    log.info(f"User {user.email} invited by {inviter.id} as {role.name!r}")
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_by_id(
    user_id: str,
    user: Annotated[UserPermissions, Depends(require_permission(ModuleType.USER, PermissionAction.READ, "user_id"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get a user the caller may read."""
    return await get_user_or_404(db, user_id)


@router.get("/{user_id}/access", response_model=ResourceAccessResponse)
async def get_user_access(
    user_id: str,
    user: Annotated[UserPermissions, Depends(require_permission(ModuleType.USER, PermissionAction.READ, "user_id"))],
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get a user's resource grants per module."""
    await get_user_or_404(db, user_id)
    return ResourceAccessResponse(user_id=user_id, grants=await read_grants(service, user_id))


@router.put("/{user_id}/access", response_model=ResourceAccessResponse)
async def replace_user_access(
    user_id: str,
    update: ResourceAccessUpdate,
    user: Annotated[UserPermissions, Depends(require_permission(ModuleType.USER, PermissionAction.UPDATE, "user_id"))],
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace the grants of the listed modules; other modules are untouched."""
    await get_user_or_404(db, user_id)
    grants = normalize_grant_modules(update)
    for module, resource_ids in grants.items():
        await ensure_inviter_covers(service, user, module, resource_ids)

    for module, resource_ids in grants.items():
        await service.grant_store.replace_resource_ids(user_id, module, resource_ids)
    await db.commit()

    return ResourceAccessResponse(user_id=user_id, grants=await read_grants(service, user_id))


@router.post("/{user_id}/access/grant", response_model=ResourceAccessResponse)
async def grant_user_access(
    user_id: str,
    update: ResourceAccessUpdate,
    user: Annotated[UserPermissions, Depends(require_permission(ModuleType.USER, PermissionAction.UPDATE, "user_id"))],
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Add resource ids to a user's grants."""
    await get_user_or_404(db, user_id)
    grants = normalize_grant_modules(update)
    for module, resource_ids in grants.items():
        await ensure_inviter_covers(service, user, module, resource_ids)

    for module, resource_ids in grants.items():
        await service.grant_store.add_resource_ids(user_id, module, resource_ids)
    await db.commit()

    return ResourceAccessResponse(user_id=user_id, grants=await read_grants(service, user_id))


@router.post("/{user_id}/access/revoke", response_model=ResourceAccessResponse)
async def revoke_user_access(
    user_id: str,
    update: ResourceAccessUpdate,
    user: Annotated[UserPermissions, Depends(require_permission(ModuleType.USER, PermissionAction.UPDATE, "user_id"))],
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Remove resource ids from a user's grants."""
    await get_user_or_404(db, user_id)
    for module, resource_ids in normalize_grant_modules(update).items():
        await service.grant_store.revoke_resource_ids(user_id, module, resource_ids)
    await db.commit()

    return ResourceAccessResponse(user_id=user_id, grants=await read_grants(service, user_id))


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    user: Annotated[UserPermissions, Depends(require_permission(ModuleType.USER, PermissionAction.DELETE, "user_id"))],
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Deactivate a user account and drop their resource grants."""
    target = await get_user_or_404(db, user_id)

    # Prevent self-deactivation
    if target.id == user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    target.is_active = False
    await service.grant_store.clear(target.id)
    await db.commit()

    log.info(f"User {target.id} deactivated by {user.id}")
    return {"message": "User deactivated successfully"}
