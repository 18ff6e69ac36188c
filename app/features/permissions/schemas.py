"""
Pydantic schemas for the permission engine.

Two kinds of models live here:
- snapshots the engine evaluates (ModulePermission, RolePermissions,
  UserPermissions, AccessibleResources, PermissionCheckResult)
- request and response models for the permission and role routes
"""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.features.permissions.constants import (
    AccessLevel,
    AccessScope,
    ModuleType,
    PermissionAction,
    PermissionLevel,
    MODULE_PERMISSION_FIELDS,
    resolve_module,
)
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Engine Snapshots
# ============================================================================

class ModulePermission(BaseModel):
    """A (permission level, access level) pair for one module."""
    permission_level: PermissionLevel
    access_level: AccessLevel

    model_config = ConfigDict(frozen=True, from_attributes=True)


NO_ACCESS = ModulePermission(
    permission_level=PermissionLevel.VIEW,
    access_level=AccessLevel.NONE,
)


class RolePermissions(BaseModel):
    """
    Read-only view of a role as the engine sees it.

    A module whose permission is None is treated as access level ``none``.
    Stored permissions with unknown levels are dropped to None while the
    snapshot is built, so a corrupt row can only ever remove access.
    """
    id: Optional[str] = None
    name: Optional[str] = None
    is_external: bool = False
    can_access_mis: bool = False

    portfolio_permission: Optional[ModulePermission] = None
    property_permission: Optional[ModulePermission] = None
    audit_permission: Optional[ModulePermission] = None
    user_permission: Optional[ModulePermission] = None
    system_settings_permission: Optional[ModulePermission] = None
    bank_details_permission: Optional[ModulePermission] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @field_validator(*MODULE_PERMISSION_FIELDS.values(), mode="before")
    @classmethod
    def drop_malformed_permission(cls, value: Any, info) -> Any:
        if value is None or isinstance(value, ModulePermission):
            return value

        if isinstance(value, dict):
            level = value.get("permission_level")
            access = value.get("access_level")
        else:
            level = getattr(value, "permission_level", None)
            access = getattr(value, "access_level", None)

        try:
            return {
                "permission_level": PermissionLevel(level),
                "access_level": AccessLevel(access),
            }
        except ValueError:
            log.warning(f"Ignoring malformed {info.field_name}: {value!r}")
            return None

    def permission_for(self, module: ModuleType | str) -> Optional[ModulePermission]:
        """Get the permission governing a module (derivatives use their parent)."""
        owner = resolve_module(module)
        if owner is None:
            return None
        return getattr(self, MODULE_PERMISSION_FIELDS[owner])


class UserPermissions(BaseModel):
    """Identity plus role snapshot for one request."""
    id: str
    email: Optional[str] = None
    role: Optional[RolePermissions] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)


class AccessibleResources(BaseModel):
    """
    Result of resolving which resources of a module a user may touch.

    - scope=all: no id filter applies, resource_ids is empty and unused
    - scope=none: nothing is accessible
    - scope=partial: exactly resource_ids (possibly empty: no grants yet)
    """
    scope: AccessScope
    resource_ids: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def unrestricted(cls) -> "AccessibleResources":
        return cls(scope=AccessScope.ALL)

    @classmethod
    def denied(cls) -> "AccessibleResources":
        return cls(scope=AccessScope.NONE)

    @classmethod
    def scoped(cls, resource_ids) -> "AccessibleResources":
        return cls(scope=AccessScope.PARTIAL, resource_ids=list(resource_ids))

    @property
    def is_unrestricted(self) -> bool:
        return self.scope == AccessScope.ALL

    @property
    def is_empty(self) -> bool:
        """True when no resource at all is reachable."""
        return not self.is_unrestricted and not self.resource_ids

    def covers(self, resource_id: str) -> bool:
        if self.scope == AccessScope.ALL:
            return True
        if self.scope == AccessScope.NONE:
            return False
        return resource_id in self.resource_ids

    def as_filter(self) -> Optional[list[str]]:
        """
        Id filter for a collection query.

        Returns None when the query must not be filtered at all.
        """
        if self.is_unrestricted:
            return None
        return list(self.resource_ids)


class PermissionCheckResult(BaseModel):
    """Outcome of a non-throwing permission check."""
    allowed: bool
    reason: Optional[str] = None


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")
    is_external: bool = Field(False, description="Role for clients / external stakeholders")
    can_access_mis: bool = Field(False, description="May open the global report")


class RoleCreate(RoleBase):
    """
    Schema for creating a new role.

    Modules left out of the payload are stored as an explicit (view, none)
    permission, never as an absent one.
    """
    is_active: bool = True

    portfolio_permission: Optional[ModulePermission] = None
    property_permission: Optional[ModulePermission] = None
    audit_permission: Optional[ModulePermission] = None
    user_permission: Optional[ModulePermission] = None
    system_settings_permission: Optional[ModulePermission] = None
    bank_details_permission: Optional[ModulePermission] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Role name must not be blank")
        return v.strip()

    @model_validator(mode="after")
    def fill_missing_permissions(self) -> "RoleCreate":
        for field in MODULE_PERMISSION_FIELDS.values():
            if getattr(self, field) is None:
                setattr(self, field, NO_ACCESS)
        return self


class RoleUpdate(BaseModel):
    """
    Schema for updating a role. Only provided fields change.

    An explicit null on a module permission stores (view, none); null on
    the other non-nullable fields is rejected.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    is_external: Optional[bool] = None
    can_access_mis: Optional[bool] = None
    is_active: Optional[bool] = None

    portfolio_permission: Optional[ModulePermission] = None
    property_permission: Optional[ModulePermission] = None
    audit_permission: Optional[ModulePermission] = None
    user_permission: Optional[ModulePermission] = None
    system_settings_permission: Optional[ModulePermission] = None
    bank_details_permission: Optional[ModulePermission] = None

    @field_validator("name", "is_external", "can_access_mis", "is_active", mode="before")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Field may be omitted but not null")
        return v

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Role name must not be blank")
        return v.strip()

    @model_validator(mode="after")
    def null_permission_means_no_access(self) -> "RoleUpdate":
        for field in MODULE_PERMISSION_FIELDS.values():
            if field in self.model_fields_set and getattr(self, field) is None:
                setattr(self, field, NO_ACCESS)
        return self


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    is_active: bool

    portfolio_permission: Optional[ModulePermission] = None
    property_permission: Optional[ModulePermission] = None
    audit_permission: Optional[ModulePermission] = None
    user_permission: Optional[ModulePermission] = None
    system_settings_permission: Optional[ModulePermission] = None
    bank_details_permission: Optional[ModulePermission] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Schema for checking if the current user may perform an action."""
    module: ModuleType = Field(..., description="Module to check")
    action: PermissionAction = Field(..., description="Action to check")
    resource_id: Optional[str] = Field(None, description="Specific resource, required for partial access")


class ModulePermissionSummary(BaseModel):
    """What a user can do in one module."""
    permission_level: Optional[PermissionLevel] = None
    access_level: Optional[AccessLevel] = None
    allowed_actions: list[PermissionAction] = []
    description: str


class MyPermissionsResponse(BaseModel):
    """Schema for the current user's permission overview."""
    user_id: str
    role_id: Optional[str] = None
    role_name: Optional[str] = None
    is_super_admin: bool
    is_external: bool
    modules: dict[ModuleType, ModulePermissionSummary]
    capabilities: dict[str, bool]


class InviteEligibilityRequest(BaseModel):
    """Either an existing role id or an inline role definition."""
    role_id: Optional[str] = None
    role: Optional[RoleCreate] = None

    @model_validator(mode="after")
    def exactly_one_target(self) -> "InviteEligibilityRequest":
        if (self.role_id is None) == (self.role is None):
            raise ValueError("Provide exactly one of role_id or role")
        return self
