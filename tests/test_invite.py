"""
Tests for invite eligibility.
"""
import pytest

from app.features.permissions.constants import PERMISSION_MODULES
from app.features.permissions.schemas import NO_ACCESS, RoleCreate, RolePermissions
from app.features.permissions.utils import can_invite_role, check_invite_role
from tests.factories import make_role, make_user, super_admin_role


@pytest.fixture
def inviter():
    return make_user(
        portfolio=("all", "all"),
        property=("update", "partial"),
        audit=("view", "all"),
    )


class TestInviteScenarios:

    def test_equal_or_lower_role_can_be_invited(self, inviter):
        target = make_role(
            portfolio=("update", "all"),
            property=("update", "partial"),
            audit=("view", "all"),
        )
        assert can_invite_role(inviter, target) is True

    def test_higher_property_level_is_refused(self, inviter):
        target = make_role(
            portfolio=("update", "all"),
            property=("all", "all"),
            audit=("view", "all"),
        )
        result = check_invite_role(inviter, target)

        assert result.allowed is False
        assert result.reason == "Target role exceeds your property permission"

    def test_external_cannot_invite_internal(self):
        permissions = dict(portfolio=("all", "all"), property=("update", "partial"), audit=("view", "all"))
        inviter = make_user(role=make_role(is_external=True, **permissions))
        target = make_role(is_external=False, **permissions)

        result = check_invite_role(inviter, target)

        assert result.allowed is False
        assert result.reason == "External users can only invite external users"

    def test_external_can_invite_external(self):
        permissions = dict(property=("view", "partial"))
        inviter = make_user(role=make_role(is_external=True, **permissions))

        assert can_invite_role(inviter, make_role(is_external=True, **permissions))

    def test_internal_can_invite_external(self, inviter):
        assert can_invite_role(inviter, make_role(is_external=True, property=("view", "partial")))


class TestInviteModuleDominance:

    def test_higher_access_is_refused(self, inviter):
        assert not can_invite_role(inviter, make_role(property=("update", "all")))

    def test_module_inviter_lacks_is_refused(self, inviter):
        result = check_invite_role(inviter, make_role(bank_details=("view", "none")))

        assert not result.allowed
        assert "bank_details" in result.reason

    def test_absent_target_module_passes(self, inviter):
        assert can_invite_role(inviter, make_role())

    def test_super_admin_can_invite_anything(self):
        assert can_invite_role(make_user(role=super_admin_role()), super_admin_role())

    def test_missing_inviter_role_or_target(self, inviter):
        assert not can_invite_role(make_user(), make_role())
        assert not can_invite_role(inviter, None)


class TestExplicitTargetPermissions:
    """Roles created through RoleCreate never carry absent module permissions."""

    def test_role_create_fills_missing_modules(self):
        role = RoleCreate(name="Viewer", property_permission={"permission_level": "view", "access_level": "all"})

        for module in PERMISSION_MODULES:
            field = f"{module.value}_permission"
            assert getattr(role, field) is not None
        assert role.portfolio_permission == NO_ACCESS

    def test_filled_role_is_checked_on_every_module(self):
        target = RolePermissions.model_validate(RoleCreate(name="Viewer").model_dump())
        inviter = make_user(property=("all", "all"))

        result = check_invite_role(inviter, target)

        assert not result.allowed
        assert result.reason == "Target role exceeds your portfolio permission"
