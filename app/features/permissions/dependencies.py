"""
FastAPI dependencies wiring the permission engine into routes.

Usage:
    @router.delete("/{property_id}")
    async def delete_property(
        property_id: str,
        user: UserPermissions = Depends(require_permission(ModuleType.PROPERTY, PermissionAction.DELETE, "property_id"))
    ):
        # user may delete this property
        ...
"""
from typing import Annotated, Optional
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.constants import ModuleType, PermissionAction
from app.features.permissions.repository import ResourceGrantStore, SqlResourceGrantStore
from app.features.permissions.schemas import UserPermissions
from app.features.permissions.service import PermissionService
from app.features.users.dependencies import get_current_user_permissions


async def get_grant_store(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> ResourceGrantStore:
    """Grant store on the request's database session."""
    return SqlResourceGrantStore(db)


async def get_permission_service(
    grant_store: Annotated[ResourceGrantStore, Depends(get_grant_store)]
) -> PermissionService:
    return PermissionService(grant_store)


def require_permission(
    module: ModuleType,
    action: PermissionAction,
    resource_param: Optional[str] = None,
):
    """
    FastAPI dependency to require a module permission.

    Args:
        module: Module to check
        action: Action to check
        resource_param: Path parameter holding the resource id, for
            instance-scoped actions

    Returns:
        Dependency returning the current user's permission snapshot

    Raises:
        AuthorizationError: mapped to 403 by the app's exception handler
    """
    async def permission_dependency(
        request: Request,
        user: Annotated[UserPermissions, Depends(get_current_user_permissions)],
        service: Annotated[PermissionService, Depends(get_permission_service)],
    ) -> UserPermissions:
        resource_id = request.path_params.get(resource_param) if resource_param else None
        await service.require_permission(user, module, action, resource_id)
        return user

    return permission_dependency
