"""User roles and the capability predicates that gate directory actions.

Roles are not ordered. Moderators carry the moderation capability, Admins and
SuperAdmins carry the admin capability, and plain Users carry neither.
SuperAdmins may additionally warn and mute (:func:`may_moderate`) and create
new Admins.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .user import User


class Role(StrEnum):
    """Role tags, valued exactly as they are persisted."""

    USER = "User"
    MODERATOR = "Moderator"
    ADMIN = "Admin"
    SUPERADMIN = "SuperAdmin"

    @classmethod
    def parse(cls, value: object) -> Role:
        """Look up a role by its tag, falling back to USER.

        :param value: Persisted role tag, possibly missing or unknown
        :return: The matching role, or ``Role.USER``
        """
        try:
            return cls(value)
        except ValueError:
            return cls.USER


MODERATION_ROLES = frozenset({Role.MODERATOR})
ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPERADMIN})


def has_moderation_capability(role: Role | None) -> bool:
    """Return True if the role may warn and mute other users."""
    return role in MODERATION_ROLES


def has_admin_capability(role: Role | None) -> bool:
    """Return True if the role may reset credentials and delete users."""
    return role in ADMIN_ROLES


def may_moderate(role: Role | None) -> bool:
    """Return True if the role may warn and mute.

    SuperAdmins carry every permission, so they pass here without holding the
    moderation capability itself.
    """
    return has_moderation_capability(role) or role is Role.SUPERADMIN


def can_create_admins(role: Role | None) -> bool:
    return role is Role.SUPERADMIN


def may_check_credential(acting: User | None, target: User) -> bool:
    """Check whether the acting user may verify the target's credential.

    Users may always check their own credential; checking anyone else's
    requires the admin capability.

    :param acting: The user asking, or None when nobody is signed in
    :param target: The user whose credential would be checked
    :return: True if the check is permitted
    """
    if acting is None:
        return False
    return acting.id == target.id or has_admin_capability(acting.role)
