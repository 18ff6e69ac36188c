"""
Pure permission rules.

Everything here is side-effect free and evaluated from the role snapshot on
every call; nothing is cached on the user. The only rule that needs I/O
(resolving granted resource ids) lives in PermissionService.
"""
from collections.abc import Iterable
from typing import Optional

from app.features.permissions.constants import (
    AccessLevel,
    PermissionAction,
    PermissionLevel,
    ModuleType,
    ACCESS_LEVEL_DESCRIPTIONS,
    ACCESS_LEVEL_RANK,
    PERMISSION_LEVEL_DESCRIPTIONS,
    PERMISSION_LEVEL_RANK,
    PERMISSION_MATRIX,
    PERMISSION_MODULES,
)
from app.features.permissions.schemas import (
    AccessibleResources,
    ModulePermission,
    PermissionCheckResult,
    RolePermissions,
    UserPermissions,
)


# ============================================================================
# Permission Matrix
# ============================================================================

def can_perform_action(permission_level, action) -> bool:
    """
    Check if a permission level allows an action.

    Unknown levels or actions are denied.

    Examples:
        >>> can_perform_action(PermissionLevel.UPDATE, PermissionAction.CREATE)
        True
        >>> can_perform_action(PermissionLevel.UPDATE, PermissionAction.DELETE)
        False
        >>> can_perform_action("owner", PermissionAction.READ)
        False
    """
    try:
        return PERMISSION_MATRIX.get(permission_level, {}).get(action, False)
    except TypeError:
        return False


def get_allowed_actions(permission_level) -> list[PermissionAction]:
    """Get the actions a permission level allows, in CRUD order."""
    return [action for action in PermissionAction if can_perform_action(permission_level, action)]


def has_any_access(permission: Optional[ModulePermission]) -> bool:
    if not permission:
        return False
    return permission.access_level != AccessLevel.NONE


def has_full_access(permission: Optional[ModulePermission]) -> bool:
    if not permission:
        return False
    return permission.access_level == AccessLevel.ALL


def requires_partial_check(permission: Optional[ModulePermission]) -> bool:
    """True when access must be narrowed to granted resources."""
    if not permission:
        return False
    return permission.access_level == AccessLevel.PARTIAL


def _can(permission: Optional[ModulePermission], action: PermissionAction) -> bool:
    if not has_any_access(permission):
        return False
    return can_perform_action(permission.permission_level, action)


def can_create(permission: Optional[ModulePermission]) -> bool:
    return _can(permission, PermissionAction.CREATE)


def can_read(permission: Optional[ModulePermission]) -> bool:
    return _can(permission, PermissionAction.READ)


def can_update(permission: Optional[ModulePermission]) -> bool:
    return _can(permission, PermissionAction.UPDATE)


def can_delete(permission: Optional[ModulePermission]) -> bool:
    return _can(permission, PermissionAction.DELETE)


def get_permission_description(permission: Optional[ModulePermission]) -> str:
    """
    Human-readable description of a permission.

    Examples:
        >>> get_permission_description(None)
        'No permission'
    """
    if not permission:
        return "No permission"

    level = PERMISSION_LEVEL_DESCRIPTIONS.get(permission.permission_level, "Unknown level")
    access = ACCESS_LEVEL_DESCRIPTIONS.get(permission.access_level, "unknown resources")
    return f"{level} on {access}"


def is_valid_permission(permission) -> bool:
    if not permission:
        return False
    return (
        getattr(permission, "permission_level", None) in PERMISSION_LEVEL_RANK
        and getattr(permission, "access_level", None) in ACCESS_LEVEL_RANK
    )


# ============================================================================
# Hierarchy
# ============================================================================

def get_permission_level_rank(level) -> int:
    """Rank a permission level: all=3, update=2, view=1, missing/unknown=0."""
    if not level:
        return 0
    try:
        return PERMISSION_LEVEL_RANK.get(level, 0)
    except TypeError:
        return 0


def get_access_level_rank(level) -> int:
    """Rank an access level: all=3, partial=2, none=1, missing/unknown=0."""
    if not level:
        return 0
    try:
        return ACCESS_LEVEL_RANK.get(level, 0)
    except TypeError:
        return 0


def is_permission_equal_or_higher(
    permission: Optional[ModulePermission],
    other: Optional[ModulePermission],
) -> bool:
    """
    Check whether ``permission`` is at least as powerful as ``other``.

    Both the permission level and the access level must dominate; a higher
    level with a lower access level does not count.

    - ``other`` absent: True (nothing to beat)
    - ``permission`` absent, ``other`` present: False
    """
    if not other:
        return True
    if not permission:
        return False

    level_ok = get_permission_level_rank(permission.permission_level) >= get_permission_level_rank(other.permission_level)
    access_ok = get_access_level_rank(permission.access_level) >= get_access_level_rank(other.access_level)
    return level_ok and access_ok


# ============================================================================
# Role Classifiers
# ============================================================================

def _role(user: Optional[UserPermissions]) -> Optional[RolePermissions]:
    if not user:
        return None
    return user.role


def _covers(accessible_ids, resource_id: str) -> bool:
    """Membership test accepting a resolver result, the "all" sentinel or a plain id list."""
    if isinstance(accessible_ids, AccessibleResources):
        return accessible_ids.covers(resource_id)
    if accessible_ids == "all":
        return True
    if isinstance(accessible_ids, Iterable) and not isinstance(accessible_ids, str):
        return resource_id in list(accessible_ids)
    return False


def is_super_admin(permission: Optional[ModulePermission]) -> bool:
    """A single module permission is super-admin grade: exactly (all, all)."""
    if not permission:
        return False
    return (
        permission.permission_level == PermissionLevel.ALL
        and permission.access_level == AccessLevel.ALL
    )


def is_role_super_admin(role: Optional[RolePermissions]) -> bool:
    if not role:
        return False
    return all(is_super_admin(role.permission_for(module)) for module in PERMISSION_MODULES)


def is_user_super_admin(user: Optional[UserPermissions]) -> bool:
    """
    Super admin holds (all, all) on every module.

    Derived from the live role on each call; never stored.
    """
    return is_role_super_admin(_role(user))


def _is_manager(user: Optional[UserPermissions], module: ModuleType) -> bool:
    role = _role(user)
    if not role:
        return False

    permission = role.permission_for(module)
    if not permission:
        return False

    return (
        permission.permission_level == PermissionLevel.ALL
        and permission.access_level in (AccessLevel.ALL, AccessLevel.PARTIAL)
    )


def _is_manager_for(
    user: Optional[UserPermissions],
    module: ModuleType,
    resource_id: str,
    accessible_ids,
) -> bool:
    role = _role(user)
    if not role:
        return False

    permission = role.permission_for(module)
    if not permission or permission.permission_level != PermissionLevel.ALL:
        return False

    if permission.access_level == AccessLevel.ALL:
        return True
    if permission.access_level == AccessLevel.PARTIAL:
        return _covers(accessible_ids, resource_id)
    return False


def is_portfolio_manager(user: Optional[UserPermissions]) -> bool:
    """Full CRUD on portfolios with all or partial access."""
    return _is_manager(user, ModuleType.PORTFOLIO)


def is_portfolio_manager_for(user: Optional[UserPermissions], portfolio_id: str, accessible_portfolio_ids) -> bool:
    """
    Portfolio manager for one portfolio.

    ``accessible_portfolio_ids`` is the resolver result for the portfolio
    module (an AccessibleResources, the "all" sentinel or a list of ids).
    """
    return _is_manager_for(user, ModuleType.PORTFOLIO, portfolio_id, accessible_portfolio_ids)


def is_property_manager(user: Optional[UserPermissions]) -> bool:
    return _is_manager(user, ModuleType.PROPERTY)


def is_property_manager_for(user: Optional[UserPermissions], property_id: str, accessible_property_ids) -> bool:
    return _is_manager_for(user, ModuleType.PROPERTY, property_id, accessible_property_ids)


def is_external_user(user: Optional[UserPermissions]) -> bool:
    role = _role(user)
    return bool(role) and role.is_external is True


def is_internal_user(user: Optional[UserPermissions]) -> bool:
    role = _role(user)
    return bool(role) and role.is_external is False


def can_access_global_report(user: Optional[UserPermissions]) -> bool:
    """Super admins and roles flagged can_access_mis."""
    role = _role(user)
    if not role:
        return False
    return is_user_super_admin(user) or role.can_access_mis is True


def can_perform_bulk_transfer(user: Optional[UserPermissions]) -> bool:
    """Super admin, or an internal property or portfolio manager."""
    if not _role(user):
        return False
    if is_user_super_admin(user):
        return True
    if not is_internal_user(user):
        return False
    return is_property_manager(user) or is_portfolio_manager(user)


def _property_permission_allows(
    user: Optional[UserPermissions],
    levels: tuple[PermissionLevel, ...],
) -> bool:
    permission = _role(user).permission_for(ModuleType.PROPERTY)
    if not permission:
        return False
    return (
        permission.permission_level in levels
        and permission.access_level in (AccessLevel.ALL, AccessLevel.PARTIAL)
    )


def can_request_property_transfer(user: Optional[UserPermissions]) -> bool:
    """Super admin, or internal with property (update|all, partial|all)."""
    if not _role(user):
        return False
    if is_user_super_admin(user):
        return True
    if not is_internal_user(user):
        return False
    return _property_permission_allows(user, (PermissionLevel.UPDATE, PermissionLevel.ALL))


def can_request_bulk_property_transfer(user: Optional[UserPermissions]) -> bool:
    """
    Super admin, or internal with property (all, partial|all).

    Stricter than a single transfer: an ``update`` level is not enough.
    """
    if not _role(user):
        return False
    if is_user_super_admin(user):
        return True
    if not is_internal_user(user):
        return False
    return _property_permission_allows(user, (PermissionLevel.ALL,))


def can_request_property_delete(user: Optional[UserPermissions]) -> bool:
    """Super admin, or property (update|all, partial|all); external users included."""
    if not _role(user):
        return False
    if is_user_super_admin(user):
        return True
    return _property_permission_allows(user, (PermissionLevel.UPDATE, PermissionLevel.ALL))


# ============================================================================
# Bank Details Shortcuts
# ============================================================================

def get_bank_details_permission(user: Optional[UserPermissions]) -> Optional[ModulePermission]:
    role = _role(user)
    if not role:
        return None
    return role.bank_details_permission


def can_read_bank_details(user: Optional[UserPermissions]) -> bool:
    return can_read(get_bank_details_permission(user))


def can_create_bank_details(user: Optional[UserPermissions]) -> bool:
    return can_create(get_bank_details_permission(user))


def can_update_bank_details(user: Optional[UserPermissions]) -> bool:
    return can_update(get_bank_details_permission(user))


def can_delete_bank_details(user: Optional[UserPermissions]) -> bool:
    return can_delete(get_bank_details_permission(user))


def has_any_bank_details_access(user: Optional[UserPermissions]) -> bool:
    return has_any_access(get_bank_details_permission(user))


def has_full_bank_details_access(user: Optional[UserPermissions]) -> bool:
    return has_full_access(get_bank_details_permission(user))


def has_partial_bank_details_access(user: Optional[UserPermissions]) -> bool:
    """Partial: bank details only for properties the user can access."""
    return requires_partial_check(get_bank_details_permission(user))


def get_capabilities(user: Optional[UserPermissions]) -> dict[str, bool]:
    """Evaluate every named classifier for a user."""
    return {
        "is_portfolio_manager": is_portfolio_manager(user),
        "is_property_manager": is_property_manager(user),
        "can_access_global_report": can_access_global_report(user),
        "can_perform_bulk_transfer": can_perform_bulk_transfer(user),
        "can_request_property_transfer": can_request_property_transfer(user),
        "can_request_bulk_property_transfer": can_request_bulk_property_transfer(user),
        "can_request_property_delete": can_request_property_delete(user),
        "can_read_bank_details": can_read_bank_details(user),
        "can_create_bank_details": can_create_bank_details(user),
        "can_update_bank_details": can_update_bank_details(user),
        "can_delete_bank_details": can_delete_bank_details(user),
        "has_any_bank_details_access": has_any_bank_details_access(user),
        "has_full_bank_details_access": has_full_bank_details_access(user),
        "has_partial_bank_details_access": has_partial_bank_details_access(user),
    }


# ============================================================================
# Invite Eligibility
# ============================================================================

def check_invite_role(
    inviter: Optional[UserPermissions],
    target_role: Optional[RolePermissions],
) -> PermissionCheckResult:
    """
    Check whether ``inviter`` may invite (or mint) a user with ``target_role``.

    Rules, in order:
    1. External users can only invite external roles.
    2. For every module, the inviter's permission must be equal or higher
       than the target's, on both level and access.
    """
    inviter_role = _role(inviter)
    if not inviter_role or not target_role:
        return PermissionCheckResult(allowed=False, reason="Inviter or target role is missing")

    if inviter_role.is_external and not target_role.is_external:
        return PermissionCheckResult(
            allowed=False,
            reason="External users can only invite external users",
        )

    for module in PERMISSION_MODULES:
        if not is_permission_equal_or_higher(
            inviter_role.permission_for(module),
            target_role.permission_for(module),
        ):
            return PermissionCheckResult(
                allowed=False,
                reason=f"Target role exceeds your {module.value} permission",
            )

    return PermissionCheckResult(allowed=True)


def can_invite_role(inviter: Optional[UserPermissions], target_role: Optional[RolePermissions]) -> bool:
    return check_invite_role(inviter, target_role).allowed
