"""
Tests for the permission matrix and the level/access hierarchy.
"""
import pytest

from app.features.permissions.constants import AccessLevel, PermissionAction, PermissionLevel
from app.features.permissions.utils import (
    can_create,
    can_delete,
    can_perform_action,
    can_read,
    can_update,
    get_access_level_rank,
    get_allowed_actions,
    get_permission_description,
    get_permission_level_rank,
    has_any_access,
    has_full_access,
    is_permission_equal_or_higher,
    is_valid_permission,
    requires_partial_check,
)
from tests.factories import perm


C, R, U, D = PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE, PermissionAction.DELETE

EXPECTED_MATRIX = {
    PermissionLevel.ALL: {C: True, R: True, U: True, D: True},
    PermissionLevel.UPDATE: {C: True, R: True, U: True, D: False},
    PermissionLevel.VIEW: {C: False, R: True, U: False, D: False},
}

ALL_PERMISSIONS = [perm(level.value, access.value) for level in PermissionLevel for access in AccessLevel]


# ============================================================================
# Matrix
# ============================================================================

class TestPermissionMatrix:
    """Every (level, action) pair against the CRUD table."""

    @pytest.mark.parametrize("level", list(PermissionLevel))
    @pytest.mark.parametrize("action", list(PermissionAction))
    def test_matches_table(self, level, action):
        assert can_perform_action(level, action) is EXPECTED_MATRIX[level][action]

    @pytest.mark.parametrize("action", [C, U, D])
    def test_view_never_writes(self, action):
        assert can_perform_action(PermissionLevel.VIEW, action) is False

    @pytest.mark.parametrize("action", list(PermissionAction))
    def test_all_allows_everything(self, action):
        assert can_perform_action(PermissionLevel.ALL, action) is True

    def test_accepts_string_values(self):
        assert can_perform_action("update", "create") is True
        assert can_perform_action("update", "delete") is False

    @pytest.mark.parametrize("level, action", [
        ("owner", R),
        (None, R),
        (PermissionLevel.ALL, "approve"),
        (PermissionLevel.ALL, None),
        (["all"], R),
    ])
    def test_unknown_inputs_denied(self, level, action):
        assert can_perform_action(level, action) is False

    def test_allowed_actions_in_crud_order(self):
        assert get_allowed_actions(PermissionLevel.ALL) == [C, R, U, D]
        assert get_allowed_actions(PermissionLevel.UPDATE) == [C, R, U]
        assert get_allowed_actions(PermissionLevel.VIEW) == [R]
        assert get_allowed_actions("bogus") == []


class TestAccessHelpers:
    """Matrix shortcuts that also respect the access level."""

    def test_none_access_blocks_every_action(self):
        permission = perm("all", "none")
        assert not can_create(permission)
        assert not can_read(permission)
        assert not can_update(permission)
        assert not can_delete(permission)

    def test_partial_update(self):
        permission = perm("update", "partial")
        assert can_create(permission)
        assert can_read(permission)
        assert can_update(permission)
        assert not can_delete(permission)

    def test_absent_permission(self):
        assert not can_read(None)
        assert not has_any_access(None)
        assert not has_full_access(None)
        assert not requires_partial_check(None)

    def test_access_classification(self):
        assert has_full_access(perm("view", "all"))
        assert requires_partial_check(perm("view", "partial"))
        assert not has_any_access(perm("all", "none"))

    @pytest.mark.parametrize("permission, expected", [
        (None, "No permission"),
        (perm("all", "all"), "Full CRUD on all resources"),
        (perm("update", "partial"), "Create, Read, Update on assigned resources only"),
        (perm("view", "none"), "Read only on no resources"),
    ])
    def test_description(self, permission, expected):
        assert get_permission_description(permission) == expected

    def test_is_valid_permission(self):
        assert is_valid_permission(perm("view", "partial"))
        assert not is_valid_permission(None)
        assert not is_valid_permission({"permission_level": "view"})


# ============================================================================
# Hierarchy
# ============================================================================

class TestRanks:

    @pytest.mark.parametrize("level, rank", [
        (PermissionLevel.ALL, 3),
        (PermissionLevel.UPDATE, 2),
        (PermissionLevel.VIEW, 1),
        ("update", 2),
        (None, 0),
        ("", 0),
        ("owner", 0),
    ])
    def test_permission_level_rank(self, level, rank):
        assert get_permission_level_rank(level) == rank

    @pytest.mark.parametrize("level, rank", [
        (AccessLevel.ALL, 3),
        (AccessLevel.PARTIAL, 2),
        (AccessLevel.NONE, 1),
        (None, 0),
        ("everything", 0),
    ])
    def test_access_level_rank(self, level, rank):
        assert get_access_level_rank(level) == rank


class TestEqualOrHigher:

    @pytest.mark.parametrize("permission", ALL_PERMISSIONS)
    def test_anything_beats_absent(self, permission):
        assert is_permission_equal_or_higher(permission, None) is True

    @pytest.mark.parametrize("permission", ALL_PERMISSIONS)
    def test_absent_never_beats_present(self, permission):
        assert is_permission_equal_or_higher(None, permission) is False

    def test_absent_vs_absent(self):
        assert is_permission_equal_or_higher(None, None) is True

    @pytest.mark.parametrize("permission", ALL_PERMISSIONS)
    def test_reflexive(self, permission):
        assert is_permission_equal_or_higher(permission, permission) is True

    def test_level_alone_is_not_enough(self):
        assert is_permission_equal_or_higher(perm("all", "none"), perm("view", "all")) is False

    def test_access_alone_is_not_enough(self):
        assert is_permission_equal_or_higher(perm("view", "all"), perm("update", "partial")) is False

    def test_both_dimensions_dominate(self):
        assert is_permission_equal_or_higher(perm("all", "all"), perm("update", "partial")) is True
        assert is_permission_equal_or_higher(perm("update", "partial"), perm("update", "none")) is True

    @pytest.mark.parametrize("a", ALL_PERMISSIONS)
    @pytest.mark.parametrize("b", ALL_PERMISSIONS)
    def test_matches_rank_comparison(self, a, b):
        expected = (
            get_permission_level_rank(a.permission_level) >= get_permission_level_rank(b.permission_level)
            and get_access_level_rank(a.access_level) >= get_access_level_rank(b.access_level)
        )
        assert is_permission_equal_or_higher(a, b) is expected
