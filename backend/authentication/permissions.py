"""
Capability matrix for staff roles.

Admins can do everything. Moderators come in three flavours:

* super: everything except super-bans and promoting other moderators
* basic (or untyped): day-to-day moderation, temporary suspensions only
* country: like basic, restricted to users in their assigned country
"""

from dataclasses import dataclass
from typing import Optional

from models.exceptions import InsufficientPermissionsException
from repositories.db_models import ModeratorType, SuspensionKind, User, UserRole


@dataclass(frozen=True)
class ModeratorPermissions:
    can_delete_posts: bool = False
    can_delete_threads: bool = False
    can_edit_posts: bool = False
    can_edit_threads: bool = False
    can_lock_threads: bool = False
    can_pin_threads: bool = False
    can_send_warnings: bool = False
    can_suspend_temporary: bool = False
    can_suspend_permanent: bool = False
    can_ban_ip: bool = False
    can_super_ban: bool = False
    can_manage_filters: bool = False
    can_manage_reports: bool = False
    can_promote_mods: bool = False
    can_view_mod_logs: bool = False
    can_assign_country_mods: bool = False
    country_restricted: bool = False


NO_PERMISSIONS = ModeratorPermissions()

ADMIN_PERMISSIONS = ModeratorPermissions(
    can_delete_posts=True,
    can_delete_threads=True,
    can_edit_posts=True,
    can_edit_threads=True,
    can_lock_threads=True,
    can_pin_threads=True,
    can_send_warnings=True,
    can_suspend_temporary=True,
    can_suspend_permanent=True,
    can_ban_ip=True,
    can_super_ban=True,
    can_manage_filters=True,
    can_manage_reports=True,
    can_promote_mods=True,
    can_view_mod_logs=True,
    can_assign_country_mods=True,
)

SUPER_MOD_PERMISSIONS = ModeratorPermissions(
    can_delete_posts=True,
    can_delete_threads=True,
    can_edit_posts=True,
    can_edit_threads=True,
    can_lock_threads=True,
    can_pin_threads=True,
    can_send_warnings=True,
    can_suspend_temporary=True,
    can_suspend_permanent=True,
    can_ban_ip=True,
    can_manage_filters=True,
    can_manage_reports=True,
    can_view_mod_logs=True,
)

BASIC_MOD_PERMISSIONS = ModeratorPermissions(
    can_delete_posts=True,
    can_edit_posts=True,
    can_lock_threads=True,
    can_send_warnings=True,
    can_suspend_temporary=True,
    can_manage_reports=True,
    can_view_mod_logs=True,
)

COUNTRY_MOD_PERMISSIONS = ModeratorPermissions(
    can_delete_posts=True,
    can_edit_posts=True,
    can_lock_threads=True,
    can_send_warnings=True,
    can_suspend_temporary=True,
    can_manage_reports=True,
    can_view_mod_logs=True,
    country_restricted=True,
)


def get_moderator_permissions(
    role: UserRole, moderator_type: Optional[ModeratorType] = None
) -> ModeratorPermissions:
    """
    Look up the capabilities of a role.

    Args:
        role: The user's role
        moderator_type: Moderator flavour (ignored unless role is mod)

    Returns:
        The matching capability set (all False for regular users)
    """
    if role == UserRole.ADMIN:
        return ADMIN_PERMISSIONS
    if role != UserRole.MOD:
        return NO_PERMISSIONS
    if moderator_type == ModeratorType.SUPER:
        return SUPER_MOD_PERMISSIONS
    if moderator_type == ModeratorType.COUNTRY:
        return COUNTRY_MOD_PERMISSIONS
    return BASIC_MOD_PERMISSIONS


def permissions_for(user: User) -> ModeratorPermissions:
    """Capabilities of a loaded user."""
    return get_moderator_permissions(user.role, user.moderator_type)


def is_staff(user: User) -> bool:
    return user.role in (UserRole.MOD, UserRole.ADMIN)


def can_moderate_user(actor: User, target: User) -> bool:
    """
    Whether `actor` may take moderation action against `target`.

    Admins can act on anyone. Super moderators can act on anyone except
    admins and other super moderators. Other moderators can only act on
    regular users. Nobody moderates themselves.
    """
    if actor.id == target.id:
        return False
    if actor.role == UserRole.ADMIN:
        return True
    if actor.role != UserRole.MOD:
        return False
    if actor.moderator_type == ModeratorType.SUPER:
        if target.role == UserRole.ADMIN:
            return False
        if target.role == UserRole.MOD and target.moderator_type == ModeratorType.SUPER:
            return False
        return True
    return target.role == UserRole.USER


def required_permission_for(kind: SuspensionKind) -> str:
    """Name of the ModeratorPermissions field needed to issue a suspension kind."""
    if kind == SuspensionKind.SUPER_BAN:
        return "can_super_ban"
    if kind == SuspensionKind.PERMANENT:
        return "can_suspend_permanent"
    return "can_suspend_temporary"


def has_permission(user: User, permission: str) -> bool:
    """Check a single capability by field name."""
    return bool(getattr(permissions_for(user), permission, False))


def ensure_permission(user: User, permission: str) -> None:
    """
    Raise unless the user holds a capability.

    Raises:
        InsufficientPermissionsException: If the capability is missing
    """
    if not has_permission(user, permission):
        raise InsufficientPermissionsException(
            f"Your role does not allow this action ({permission})"
        )


def ensure_can_moderate(actor: User, target: User) -> None:
    """
    Raise unless `actor` outranks `target` in the staff hierarchy.

    Raises:
        InsufficientPermissionsException: If the hierarchy forbids it
    """
    if not can_moderate_user(actor, target):
        raise InsufficientPermissionsException(
            f"You cannot moderate user {target.id}"
        )
