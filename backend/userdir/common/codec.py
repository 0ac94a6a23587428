"""Conversion between ``User`` objects and flat storable records.

The record is the storage boundary and is the only place the credential is
exposed. Decoding is lenient: an unknown or missing role yields a plain
``Role.USER`` and missing fields take empty defaults.
"""

from __future__ import annotations

from typing import Any

from .roles import Role
from .user import User

RECORD_FIELDS = (
    "id",
    "name",
    "email",
    "role",
    "isDeleted",
    "credential",
    "warningCount",
    "mutedUntil",
)


def to_record(user: User) -> dict[str, Any]:
    """Flatten a user into a storable record.

    :param user: The user to serialize
    :return: A mapping with every persisted field, credential included
    """
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "isDeleted": user.is_deleted,
        "credential": user._credential,  # noqa: SLF001
        "warningCount": user.warning_count,
        "mutedUntil": user.muted_until,
    }


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _hydration_fields(record: dict[str, Any]) -> dict[str, Any]:
    """Fields applied the same way whatever the role variant."""
    return {
        "user_id": record.get("id") or None,
        "is_deleted": bool(record.get("isDeleted")),
        "warning_count": max(0, _as_int(record.get("warningCount"))),
        "muted_until": _as_int(record.get("mutedUntil")),
    }


def from_record(record: dict[str, Any] | None) -> User:
    """Rebuild a user from a stored record.

    :param record: A mapping as produced by :func:`to_record`
    :return: A user of the recorded role, ``Role.USER`` if the role is unknown
    """
    record = record or {}
    role = Role.parse(record.get("role"))
    return User(
        record.get("name") or "",
        record.get("email") or "",
        record.get("credential") or "",
        role,
        **_hydration_fields(record),
    )
