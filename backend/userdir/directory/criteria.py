"""Search criteria for the user directory.

All present fields are ANDed. An empty criteria object matches every user.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from userdir.common import Role, User


def _text(value: Any) -> str | None:
    """Stringify a substring filter. None and "" mean no filter."""
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class SearchCriteria:
    """Optional filters applied to every user in the directory.

    :param q: Case-insensitive substring of either name or email
    :param id: Exact user id
    :param name: Case-insensitive substring of the name
    :param email: Case-insensitive substring of the email
    :param role: Exact role
    :param is_deleted: Exact deletion flag
    """

    q: str | None = None
    id: str | None = None
    name: str | None = None
    email: str | None = None
    role: Role | str | None = None
    is_deleted: bool | None = None

    @classmethod
    def from_mapping(cls, criteria: Mapping[str, Any] | None) -> SearchCriteria:
        """Build criteria from a record-style mapping.

        Accepts ``isDeleted`` as well as ``is_deleted``. Empty strings count as
        absent and a non-boolean deletion flag is ignored.
        """
        if not criteria:
            return cls()
        is_deleted = criteria.get("isDeleted", criteria.get("is_deleted"))
        role = criteria.get("role")
        return cls(
            q=_text(criteria.get("q")),
            id=criteria.get("id") or None,
            name=_text(criteria.get("name")),
            email=_text(criteria.get("email")),
            role=role or None,
            is_deleted=is_deleted if isinstance(is_deleted, bool) else None,
        )

    @classmethod
    def coerce(
        cls,
        criteria: SearchCriteria | Mapping[str, Any] | str | None,
    ) -> SearchCriteria:
        """Normalize the accepted criteria forms. A bare string is an id."""
        if isinstance(criteria, SearchCriteria):
            return criteria
        if isinstance(criteria, str):
            return cls(id=criteria or None)
        return cls.from_mapping(criteria)

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) in (None, "") for f in fields(self))

    def matches(self, user: User) -> bool:
        name = user.name.lower()
        email = user.email.lower()
        if self.id and user.id != self.id:
            return False
        if self.q:
            q = self.q.lower()
            if q not in name and q not in email:
                return False
        if self.name and self.name.lower() not in name:
            return False
        if self.email and self.email.lower() not in email:
            return False
        if self.role and user.role != self.role:
            return False
        if self.is_deleted is not None and user.is_deleted != self.is_deleted:
            return False
        return True
