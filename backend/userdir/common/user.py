"""Fundamental user data model for the directory.

A single ``User`` type carries a role tag. What a user may do to another user
is decided by the capability predicates in :mod:`.roles`, evaluated against
the acting user's role at the moment of each call.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from .roles import (
    Role,
    can_create_admins,
    has_admin_capability,
    may_moderate,
)

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_user_id() -> str:
    return str(uuid.uuid4())


class User:
    """A directory user and its moderation state.

    ``id`` and ``role`` are fixed at construction. ``is_deleted`` only ever
    goes from False to True and ``warning_count`` never decreases. Whether the
    user is muted is always derived from ``muted_until`` and the current time.

    :param name: Display name
    :param email: Contact address, not assumed unique
    :param credential: Secret compared by exact equality
    :param role: Role tag, ``Role.USER`` by default
    :param user_id: Existing id to keep, a new uuid4 is generated otherwise
    :param is_deleted: Whether the user has been soft deleted
    :param warning_count: Number of warnings received so far
    :param muted_until: Mute deadline in ms since the epoch, 0 if never muted
    """

    def __init__(
        self,
        name: str,
        email: str,
        credential: object = "",
        role: Role = Role.USER,
        *,
        user_id: str | None = None,
        is_deleted: bool = False,
        warning_count: int = 0,
        muted_until: int = 0,
    ) -> None:
        self._id = user_id or new_user_id()
        self._role = Role(role)
        self.name = name
        self.email = email
        self._credential = str(credential)
        self._is_deleted = bool(is_deleted)
        self._warning_count = max(0, int(warning_count))
        self._muted_until = int(muted_until)

    @property
    def id(self) -> str:
        return self._id

    @property
    def role(self) -> Role:
        return self._role

    @property
    def is_deleted(self) -> bool:
        return self._is_deleted

    @property
    def warning_count(self) -> int:
        return self._warning_count

    @property
    def muted_until(self) -> int:
        return self._muted_until

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return (
            self._id == other._id
            and self._role is other._role
            and self.name == other.name
            and self.email == other.email
            and self._credential == other._credential
            and self._is_deleted == other._is_deleted
            and self._warning_count == other._warning_count
            and self._muted_until == other._muted_until
        )

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return (
            f"User(id={self._id!r}, name={self.name!r}, email={self.email!r}, "
            f"role={self._role.value!r}, is_deleted={self._is_deleted!r})"
        )

    def info(self) -> dict[str, Any]:
        """Public view of the user, without the credential."""
        return {
            "id": self._id,
            "name": self.name,
            "email": self.email,
            "role": self._role.value,
            "isDeleted": self._is_deleted,
        }

    # Target-side primitives

    def check_credential(self, value: object) -> bool:
        """Compare a candidate credential with the stored one.

        Whether the caller may ask is decided beforehand with
        :func:`.roles.may_check_credential`.

        :param value: Candidate credential, compared as a string
        :return: True on an exact match
        """
        return self._credential == str(value)

    def set_credential_as(self, requester: User | None, value: object) -> bool:
        """Overwrite the credential on behalf of ``requester``.

        :param requester: The user asking for the change
        :param value: The new credential
        :return: True if the requester holds the admin capability and the
            credential was replaced, False otherwise
        """
        requester_role = requester.role if requester is not None else None
        if not has_admin_capability(requester_role):
            LOGGER.debug(
                "Credential reset for %s denied to %s",
                self._id,
                requester_role,
            )
            return False
        self._credential = str(value)
        return True

    def add_warning(self) -> int:
        self._warning_count += 1
        return self._warning_count

    def mute(self, duration_ms: int, now: int | None = None) -> int:
        """Mute the user for ``duration_ms`` from ``now``.

        Negative durations are treated as zero.

        :param duration_ms: Mute length in milliseconds
        :param now: Reference time in ms since the epoch, defaults to the clock
        :return: The absolute mute deadline
        """
        if now is None:
            now = now_ms()
        self._muted_until = now + max(0, int(duration_ms))
        return self._muted_until

    def soft_delete(self) -> bool:
        """Mark the user deleted.

        :return: True if this call changed the flag, False if it was set already
        """
        if self._is_deleted:
            return False
        self._is_deleted = True
        return True

    def is_muted(self, now: int | None = None) -> bool:
        if now is None:
            now = now_ms()
        return now < self._muted_until

    def remaining_mute_ms(self, now: int | None = None) -> int:
        if now is None:
            now = now_ms()
        return max(0, self._muted_until - now)

    # Acting-side operations, gated on this user's role

    def warn_user(self, target: User) -> int | None:
        """Give ``target`` a warning.

        :return: The target's new warning count, or None if this user may not
            moderate
        """
        if not may_moderate(self._role):
            LOGGER.debug("%s (%s) may not warn users", self._id, self._role)
            return None
        return target.add_warning()

    def mute_user(
        self,
        target: User,
        duration_ms: int,
        now: int | None = None,
    ) -> int | None:
        """Mute ``target`` for ``duration_ms`` milliseconds.

        :return: The mute deadline, or None if this user may not moderate
        """
        if not may_moderate(self._role):
            LOGGER.debug("%s (%s) may not mute users", self._id, self._role)
            return None
        return target.mute(duration_ms, now)

    def reset_credential(self, target: User, value: object) -> bool:
        return target.set_credential_as(self, value)

    def delete_user(self, target: User) -> bool:
        """Soft delete ``target``.

        :return: True only if the target was active and is now deleted; False
            if this user lacks the admin capability or the target was already
            deleted
        """
        if not has_admin_capability(self._role):
            LOGGER.debug("%s (%s) may not delete users", self._id, self._role)
            return False
        return target.soft_delete()

    def create_admin(self, name: str, email: str, credential: object) -> User | None:
        """Create a new Admin user. Only SuperAdmins may do this."""
        if not can_create_admins(self._role):
            LOGGER.debug("%s (%s) may not create admins", self._id, self._role)
            return None
        return User(name, email, credential, Role.ADMIN)
