"""Common data models for the directory."""

from .codec import from_record, to_record
from .roles import (
    Role,
    can_create_admins,
    has_admin_capability,
    has_moderation_capability,
    may_check_credential,
    may_moderate,
)
from .user import User, now_ms

__all__ = [
    "Role",
    "User",
    "can_create_admins",
    "from_record",
    "has_admin_capability",
    "has_moderation_capability",
    "may_check_credential",
    "may_moderate",
    "now_ms",
    "to_record",
]
