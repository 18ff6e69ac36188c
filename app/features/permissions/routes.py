"""
Permission and role API routes.

Provides the permission overview and checks for the current user, invite
eligibility, and role management.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.database.engine import get_db
from app.features.permissions.constants import ModuleType, PermissionAction, PERMISSION_MODULES
from app.features.permissions.dependencies import get_permission_service
from app.features.permissions.exceptions import AuthorizationError
from app.features.permissions.models import UserRole
from app.features.permissions.schemas import (
    AccessibleResources,
    InviteEligibilityRequest,
    ModulePermissionSummary,
    MyPermissionsResponse,
    PermissionCheckRequest,
    PermissionCheckResult,
    RoleCreate,
    RolePermissions,
    RoleResponse,
    RoleUpdate,
    UserPermissions,
)
from app.features.permissions.service import PermissionService
from app.features.permissions.utils import (
    check_invite_role,
    get_allowed_actions,
    get_capabilities,
    get_permission_description,
    is_user_super_admin,
    is_external_user,
)
from app.features.users.dependencies import get_current_user_permissions
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

CurrentUser = Annotated[UserPermissions, Depends(get_current_user_permissions)]
Service = Annotated[PermissionService, Depends(get_permission_service)]


async def get_role_or_404(db: AsyncSession, role_id: str) -> UserRole:
    result = await db.execute(select(UserRole).where(UserRole.id == role_id))
    role = result.scalar_one_or_none()
    if role is None:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


def ensure_can_grant_role(user: UserPermissions, target: RolePermissions) -> None:
    """Refuse to create or shape a role more powerful than the caller's own."""
    result = check_invite_role(user, target)
    if not result.allowed:
        raise AuthorizationError(result.reason)


# ============================================================================
# Current User Permission Routes
# ============================================================================

@router.get("/me", response_model=MyPermissionsResponse)
async def get_my_permissions(user: CurrentUser):
    """Overview of what the current user can do in every module."""
    role = user.role
    modules = {}
    for module in PERMISSION_MODULES:
        permission = role.permission_for(module) if role else None
        modules[module] = ModulePermissionSummary(
            permission_level=permission.permission_level if permission else None,
            access_level=permission.access_level if permission else None,
            allowed_actions=get_allowed_actions(permission.permission_level) if permission else [],
            description=get_permission_description(permission),
        )

    return MyPermissionsResponse(
        user_id=user.id,
        role_id=role.id if role else None,
        role_name=role.name if role else None,
        is_super_admin=is_user_super_admin(user),
        is_external=is_external_user(user),
        modules=modules,
        capabilities=get_capabilities(user),
    )


@router.post("/check", response_model=PermissionCheckResult)
async def check_permission(
    check: PermissionCheckRequest,
    user: CurrentUser,
    service: Service,
):
    """Check whether the current user may perform an action (never 403s)."""
    return await service.check_permission(user, check.module, check.action, check.resource_id)


@router.get("/accessible/{module}", response_model=AccessibleResources)
async def get_accessible_resources(
    module: ModuleType,
    user: CurrentUser,
    service: Service,
):
    """Resources of a module the current user may touch."""
    return await service.get_accessible_resource_ids(user, module)


@router.post("/invite-eligibility", response_model=PermissionCheckResult)
async def check_invite_eligibility(
    request: InviteEligibilityRequest,
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Check whether the current user may invite someone into a role."""
    if request.role_id is not None:
        target = RolePermissions.model_validate(await get_role_or_404(db, request.role_id))
    else:
        target = RolePermissions.model_validate(request.role.model_dump())

    return check_invite_role(user, target)


# ============================================================================
# Role Routes
# ============================================================================

@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    user: CurrentUser,
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a role no more powerful than the caller's own."""
    service.require_module_permission(user, ModuleType.USER_ROLE, PermissionAction.CREATE)
    ensure_can_grant_role(user, RolePermissions.model_validate(role.model_dump()))

    try:
        db_role = UserRole(**role.model_dump(mode="json"))
        db.add(db_role)
        await db.commit()
        await db.refresh(db_role)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )

    log.info(f"Role {db_role.name!r} created by user {user.id}")
    return db_role


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    user: CurrentUser,
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100,
    include_inactive: bool = False,
):
    """List roles."""
    service.require_module_permission(user, ModuleType.USER_ROLE, PermissionAction.READ)

    stmt = select(UserRole).order_by(UserRole.name)
    if not include_inactive:
        stmt = stmt.where(UserRole.is_active == True)  # noqa: E712
    stmt = stmt.offset(skip).limit(limit)

    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    user: CurrentUser,
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Get a specific role by ID."""
    service.require_module_permission(user, ModuleType.USER_ROLE, PermissionAction.READ)
    return await get_role_or_404(db, role_id)


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    user: CurrentUser,
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Update a role.

    The updated role must still be one the caller could invite, and the
    caller cannot edit the role they hold themselves.
    """
    service.require_module_permission(user, ModuleType.USER_ROLE, PermissionAction.UPDATE)
    db_role = await get_role_or_404(db, role_id)

    if user.role and user.role.id == db_role.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot update your own role"
        )

    update_data = role_update.model_dump(mode="json", exclude_unset=True)
    merged = RolePermissions.model_validate(db_role).model_dump(mode="json")
    merged.update(update_data)
    ensure_can_grant_role(user, RolePermissions.model_validate(merged))

    for key, value in update_data.items():
        setattr(db_role, key, value)

    try:
        await db.commit()
        await db.refresh(db_role)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )

    log.info(f"Role {db_role.name!r} updated by user {user.id}: {sorted(update_data)}")
    return db_role


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    user: CurrentUser,
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete a role that no user holds."""
    service.require_module_permission(user, ModuleType.USER_ROLE, PermissionAction.DELETE)
    db_role = await get_role_or_404(db, role_id)

    assigned = await db.scalar(
        select(func.count()).select_from(User).where(User.user_role_id == role_id)
    )
    if assigned:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Role is assigned to {assigned} user(s)"
        )

    await db.delete(db_role)
    await db.commit()

    log.info(f"Role {db_role.name!r} deleted by user {user.id}")
    return None
