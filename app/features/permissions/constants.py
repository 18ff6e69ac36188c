"""
Permission enums and the static lookup tables the engine evaluates.

Permission Level (what actions can be performed):
- all: Full CRUD (Create, Read, Update, Delete)
- update: CRU (Create, Read, Update) - no Delete
- view: R (Read only)

Access Level (which resources can be accessed):
- all: every resource of the module
- partial: only resources explicitly granted to the user
- none: no resources at all
"""
import enum


class PermissionLevel(str, enum.Enum):
    """How much CRUD power a role holds within a module."""
    VIEW = "view"
    UPDATE = "update"
    ALL = "all"


class AccessLevel(str, enum.Enum):
    """How many resource instances of a module a role may touch."""
    NONE = "none"
    PARTIAL = "partial"
    ALL = "all"


class PermissionAction(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class ModuleType(str, enum.Enum):
    """
    Permission domains.

    USER_ROLE is a derivative of USER: role management is governed by the
    user permission and shares its resource grants.
    """
    PORTFOLIO = "portfolio"
    PROPERTY = "property"
    AUDIT = "audit"
    USER = "user"
    SYSTEM_SETTINGS = "system_settings"
    BANK_DETAILS = "bank_details"
    USER_ROLE = "user_role"


class AccessScope(str, enum.Enum):
    """Kind of result returned by the resource access resolver."""
    ALL = "all"
    NONE = "none"
    PARTIAL = "partial"


# Modules that carry their own permission on a role, in evaluation order
PERMISSION_MODULES: tuple[ModuleType, ...] = (
    ModuleType.PORTFOLIO,
    ModuleType.PROPERTY,
    ModuleType.AUDIT,
    ModuleType.USER,
    ModuleType.SYSTEM_SETTINGS,
    ModuleType.BANK_DETAILS,
)

MODULE_PARENTS: dict[ModuleType, ModuleType] = {
    ModuleType.USER_ROLE: ModuleType.USER,
}

# Role attribute holding each module's permission
MODULE_PERMISSION_FIELDS: dict[ModuleType, str] = {
    module: f"{module.value}_permission" for module in PERMISSION_MODULES
}


# ============================================================================
# Lookup tables
# ============================================================================

PERMISSION_MATRIX: dict[PermissionLevel, dict[PermissionAction, bool]] = {
    PermissionLevel.ALL: {
        PermissionAction.CREATE: True,
        PermissionAction.READ: True,
        PermissionAction.UPDATE: True,
        PermissionAction.DELETE: True,
    },
    PermissionLevel.UPDATE: {
        PermissionAction.CREATE: True,
        PermissionAction.READ: True,
        PermissionAction.UPDATE: True,
        PermissionAction.DELETE: False,
    },
    PermissionLevel.VIEW: {
        PermissionAction.CREATE: False,
        PermissionAction.READ: True,
        PermissionAction.UPDATE: False,
        PermissionAction.DELETE: False,
    },
}

# Higher rank = more power; missing or unknown levels rank 0
PERMISSION_LEVEL_RANK: dict[PermissionLevel, int] = {
    PermissionLevel.ALL: 3,
    PermissionLevel.UPDATE: 2,
    PermissionLevel.VIEW: 1,
}

ACCESS_LEVEL_RANK: dict[AccessLevel, int] = {
    AccessLevel.ALL: 3,
    AccessLevel.PARTIAL: 2,
    AccessLevel.NONE: 1,
}

PERMISSION_LEVEL_DESCRIPTIONS: dict[PermissionLevel, str] = {
    PermissionLevel.ALL: "Full CRUD",
    PermissionLevel.UPDATE: "Create, Read, Update",
    PermissionLevel.VIEW: "Read only",
}

ACCESS_LEVEL_DESCRIPTIONS: dict[AccessLevel, str] = {
    AccessLevel.ALL: "all resources",
    AccessLevel.PARTIAL: "assigned resources only",
    AccessLevel.NONE: "no resources",
}


def resolve_module(module: ModuleType | str) -> ModuleType | None:
    """
    Map a module (or its string value) to the module that owns its permission.

    Returns None for values that are not a known module.
    """
    try:
        module = ModuleType(module)
    except ValueError:
        return None
    return MODULE_PARENTS.get(module, module)
