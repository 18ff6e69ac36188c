"""
Permission decision service.

Composes the matrix, the role snapshot and the resource grant store into the
two entry points every domain route uses:

    result = await service.check_permission(user, ModuleType.PROPERTY, PermissionAction.UPDATE, property_id)
    await service.require_permission(user, ModuleType.PROPERTY, PermissionAction.UPDATE, property_id)

Nothing is cached between calls. A route that needs the same module's
accessible ids more than once should resolve them once and pass the result
back in through ``accessible``.
"""
from typing import Optional

from app.features.permissions.constants import (
    AccessLevel,
    ModuleType,
    PermissionAction,
    resolve_module,
)
from app.features.permissions.exceptions import AuthorizationError
from app.features.permissions.repository import ResourceGrantStore
from app.features.permissions.schemas import (
    AccessibleResources,
    PermissionCheckResult,
    UserPermissions,
)
from app.features.permissions.utils import can_perform_action, is_user_super_admin
from app.utils import get_logger


log = get_logger(__name__)

# Actions that target one existing resource
INSTANCE_ACTIONS = frozenset({PermissionAction.READ, PermissionAction.UPDATE, PermissionAction.DELETE})


class PermissionService:
    """Permission decisions for one request, backed by an injected grant store."""

    def __init__(self, grant_store: ResourceGrantStore):
        self.grant_store = grant_store

    async def get_accessible_resource_ids(
        self,
        user: UserPermissions,
        module: ModuleType,
    ) -> AccessibleResources:
        """
        Resolve which resources of ``module`` the user may touch.

        - permission absent or access ``none``: denied (empty)
        - access ``all``: unrestricted, callers must not filter by id
        - access ``partial``: the stored grant list, verbatim

        Raises:
            GrantStoreError: the grant lookup failed
        """
        permission = user.role.permission_for(module) if user.role else None

        if not permission or permission.access_level == AccessLevel.NONE:
            return AccessibleResources.denied()

        if permission.access_level == AccessLevel.ALL:
            return AccessibleResources.unrestricted()

        resource_ids = await self.grant_store.get_resource_ids(user.id, resolve_module(module))
        return AccessibleResources.scoped(resource_ids)

    async def check_permission(
        self,
        user: UserPermissions,
        module: ModuleType,
        action: PermissionAction,
        resource_id: Optional[str] = None,
        accessible: Optional[AccessibleResources] = None,
    ) -> PermissionCheckResult:
        """
        Decide whether ``user`` may perform ``action`` in ``module``.

        Denials come back as ``allowed=False`` with a reason. Only a failed
        grant lookup raises (GrantStoreError).

        With partial access, READ/UPDATE/DELETE need a ``resource_id``;
        collection queries should use get_accessible_resource_ids instead.
        """
        module = ModuleType(module)
        action = PermissionAction(action)

        if is_user_super_admin(user):
            log.debug(f"User {user.id} is super admin - allowed {action.value} on {module.value}")
            return PermissionCheckResult(allowed=True)

        result = self.check_module_permission(user, module, action)
        if not result.allowed:
            return result

        permission = user.role.permission_for(module)
        if permission.access_level == AccessLevel.ALL:
            return result

        # Partial access
        if resource_id is None:
            if action in INSTANCE_ACTIONS:
                return self._deny(
                    user,
                    f"Access denied: a {module.value} id is required with partial access; "
                    f"filter by accessible {module.value} ids instead",
                )
            return PermissionCheckResult(allowed=True)

        if accessible is None:
            accessible = await self.get_accessible_resource_ids(user, module)

        if not accessible.covers(resource_id):
            return self._deny(
                user,
                f"Access denied: resource not in user's accessible {module.value} set",
            )

        return PermissionCheckResult(allowed=True)

    async def require_permission(
        self,
        user: UserPermissions,
        module: ModuleType,
        action: PermissionAction,
        resource_id: Optional[str] = None,
        accessible: Optional[AccessibleResources] = None,
    ) -> None:
        """
        Same rules as check_permission, raising on denial.

        Raises:
            AuthorizationError: the action is not allowed
            GrantStoreError: the grant lookup failed
        """
        result = await self.check_permission(user, module, action, resource_id, accessible)
        if not result.allowed:
            raise AuthorizationError(result.reason)

    def check_module_permission(
        self,
        user: UserPermissions,
        module: ModuleType,
        action: PermissionAction,
    ) -> PermissionCheckResult:
        """
        Module-level check for collection and catalogue endpoints.

        Applies the super admin, access ``none`` and matrix rules but no
        resource scoping; list endpoints still filter with
        get_accessible_resource_ids.
        """
        module = ModuleType(module)
        action = PermissionAction(action)

        if is_user_super_admin(user):
            return PermissionCheckResult(allowed=True)

        permission = user.role.permission_for(module) if user.role else None

        if not permission or permission.access_level == AccessLevel.NONE:
            return self._deny(user, f"Access denied: no access to {module.value} module")

        if not can_perform_action(permission.permission_level, action):
            return self._deny(
                user,
                f"Action '{action.value}' not allowed with permission level "
                f"'{permission.permission_level.value}' on {module.value} module",
            )

        return PermissionCheckResult(allowed=True)

    def require_module_permission(
        self,
        user: UserPermissions,
        module: ModuleType,
        action: PermissionAction,
    ) -> None:
        result = self.check_module_permission(user, module, action)
        if not result.allowed:
            raise AuthorizationError(result.reason)

    async def can_access_resource(
        self,
        user: UserPermissions,
        module: ModuleType,
        resource_id: str,
    ) -> bool:
        """Whether a resource is reachable at all, regardless of action."""
        if is_user_super_admin(user):
            return True
        accessible = await self.get_accessible_resource_ids(user, module)
        return accessible.covers(resource_id)

    async def grant_created_resource(
        self,
        user: UserPermissions,
        module: ModuleType,
        resource_id: str,
    ) -> bool:
        """
        Add a resource the user just created to their grants.

        Only partial access needs this; with ``all`` access the new resource
        is already reachable. Returns whether a grant was written.
        """
        permission = user.role.permission_for(module) if user.role else None
        if is_user_super_admin(user) or not permission or permission.access_level != AccessLevel.PARTIAL:
            return False

        await self.grant_store.add_resource_ids(user.id, resolve_module(module), [resource_id])
        return True

    def _deny(self, user: UserPermissions, reason: str) -> PermissionCheckResult:
        log.info(f"Permission denied for user {user.id}: {reason}")
        return PermissionCheckResult(allowed=False, reason=reason)
