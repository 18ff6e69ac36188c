"""
Tests for the engine snapshots built from stored roles.
"""
import pytest
from pydantic import ValidationError

from app.features.permissions.constants import AccessLevel, AccessScope, ModuleType, PermissionLevel, resolve_module
from app.features.permissions.models import UserRole
from app.features.permissions.schemas import (
    AccessibleResources,
    InviteEligibilityRequest,
    RoleCreate,
    RolePermissions,
    RoleUpdate,
    UserPermissions,
)


class TestRoleSnapshot:

    def test_built_from_orm_row(self):
        row = UserRole(
            id="r1",
            name="Manager",
            is_external=False,
            can_access_mis=True,
            property_permission={"permission_level": "update", "access_level": "partial"},
        )

        role = RolePermissions.model_validate(row)

        assert role.can_access_mis is True
        assert role.property_permission.permission_level == PermissionLevel.UPDATE
        assert role.property_permission.access_level == AccessLevel.PARTIAL
        assert role.portfolio_permission is None

    @pytest.mark.parametrize("stored", [
        {"permission_level": "owner", "access_level": "all"},
        {"permission_level": "all", "access_level": "everything"},
        {"permission_level": "all"},
        {},
        "all",
    ])
    def test_malformed_permission_is_dropped(self, stored):
        role = RolePermissions(property_permission=stored)
        assert role.property_permission is None

    def test_user_role_module_reads_user_permission(self):
        role = RolePermissions(user_permission={"permission_level": "view", "access_level": "all"})

        assert role.permission_for(ModuleType.USER_ROLE) == role.user_permission
        assert role.permission_for("user_role") == role.user_permission

    def test_unknown_module(self):
        assert RolePermissions().permission_for("reports") is None
        assert resolve_module("reports") is None

    def test_user_snapshot_without_role(self):
        user = UserPermissions(id="u1")
        assert user.role is None


class TestAccessibleResources:

    def test_unrestricted(self):
        accessible = AccessibleResources.unrestricted()
        assert accessible.covers("anything")
        assert accessible.as_filter() is None
        assert not accessible.is_empty

    def test_denied(self):
        accessible = AccessibleResources.denied()
        assert accessible.scope == AccessScope.NONE
        assert not accessible.covers("anything")
        assert accessible.as_filter() == []
        assert accessible.is_empty

    def test_scoped(self):
        accessible = AccessibleResources.scoped(("a", "b"))
        assert accessible.covers("a")
        assert not accessible.covers("c")
        assert accessible.as_filter() == ["a", "b"]

    def test_serializes_tagged_scope(self):
        assert AccessibleResources.unrestricted().model_dump(mode="json") == {"scope": "all", "resource_ids": []}


class TestRoleCreate:

    def test_name_is_stripped(self):
        assert RoleCreate(name="  Auditor  ").name == "Auditor"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            RoleCreate(name="   ")

    def test_invalid_level_rejected(self):
        with pytest.raises(ValidationError):
            RoleCreate(name="Bad", audit_permission={"permission_level": "owner", "access_level": "all"})


class TestRoleUpdate:

    def test_omitted_permission_stays_unset(self):
        assert RoleUpdate(description="x").model_dump(exclude_unset=True) == {"description": "x"}

    def test_null_permission_becomes_no_access(self):
        update = RoleUpdate(bank_details_permission=None)

        assert update.model_dump(mode="json", exclude_unset=True) == {
            "bank_details_permission": {"permission_level": "view", "access_level": "none"},
        }

    def test_null_name_rejected(self):
        with pytest.raises(ValidationError):
            RoleUpdate(name=None)


class TestInviteEligibilityRequest:

    def test_requires_exactly_one_target(self):
        with pytest.raises(ValidationError):
            InviteEligibilityRequest()
        with pytest.raises(ValidationError):
            InviteEligibilityRequest(role_id="r1", role={"name": "Inline"})

    def test_inline_role(self):
        request = InviteEligibilityRequest(role={"name": "Inline"})
        assert request.role.name == "Inline"
