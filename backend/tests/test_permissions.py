"""Tests for the staff capability matrix."""

import pytest

from authentication.permissions import (
    can_moderate_user,
    ensure_can_moderate,
    ensure_permission,
    get_moderator_permissions,
    has_permission,
    required_permission_for,
)
from models.exceptions import InsufficientPermissionsException
from repositories.db_models import ModeratorType, SuspensionKind, UserRole


class TestCapabilities:
    def test_regular_user_has_nothing(self):
        perms = get_moderator_permissions(UserRole.USER)
        assert not any(vars(perms).values())

    def test_only_admin_can_super_ban(self):
        assert get_moderator_permissions(UserRole.ADMIN).can_super_ban
        assert not get_moderator_permissions(
            UserRole.MOD, ModeratorType.SUPER
        ).can_super_ban

    def test_basic_mod_limits(self):
        perms = get_moderator_permissions(UserRole.MOD, ModeratorType.BASIC)
        assert perms.can_suspend_temporary
        assert perms.can_manage_reports
        assert not perms.can_suspend_permanent
        assert not perms.can_manage_filters

    def test_untyped_mod_is_basic(self):
        assert get_moderator_permissions(UserRole.MOD) == get_moderator_permissions(
            UserRole.MOD, ModeratorType.BASIC
        )

    def test_country_mod_is_restricted(self):
        perms = get_moderator_permissions(UserRole.MOD, ModeratorType.COUNTRY)
        assert perms.country_restricted

    @pytest.mark.parametrize(
        "kind, permission",
        [
            (SuspensionKind.TEMPORARY, "can_suspend_temporary"),
            (SuspensionKind.PERMANENT, "can_suspend_permanent"),
            (SuspensionKind.SUPER_BAN, "can_super_ban"),
        ],
    )
    def test_required_permission_for(self, kind, permission):
        assert required_permission_for(kind) == permission

    def test_ensure_permission(self, basic_mod, super_mod):
        ensure_permission(super_mod, "can_manage_filters")
        assert has_permission(basic_mod, "can_manage_filters") is False
        with pytest.raises(InsufficientPermissionsException):
            ensure_permission(basic_mod, "can_manage_filters")

    def test_unknown_permission_is_denied(self, admin_user):
        assert has_permission(admin_user, "can_launch_rockets") is False


class TestHierarchy:
    def test_nobody_moderates_themselves(self, admin_user):
        assert can_moderate_user(admin_user, admin_user) is False

    def test_admin_moderates_anyone(self, admin_user, super_mod, test_user):
        assert can_moderate_user(admin_user, super_mod)
        assert can_moderate_user(admin_user, test_user)

    def test_super_mod_cannot_touch_peers_or_admins(
        self, super_mod, basic_mod, admin_user, make_user
    ):
        peer = make_user("other_super", UserRole.MOD, ModeratorType.SUPER)
        assert can_moderate_user(super_mod, basic_mod)
        assert not can_moderate_user(super_mod, peer)
        assert not can_moderate_user(super_mod, admin_user)

    def test_basic_mod_only_moderates_users(self, basic_mod, country_mod, test_user):
        assert can_moderate_user(basic_mod, test_user)
        assert not can_moderate_user(basic_mod, country_mod)
        with pytest.raises(InsufficientPermissionsException):
            ensure_can_moderate(basic_mod, country_mod)

    def test_regular_user_moderates_nobody(self, test_user, other_user):
        assert can_moderate_user(test_user, other_user) is False
