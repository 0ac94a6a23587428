"""Role-gated user directory over an asynchronous SQLite store."""

from .common import Role, User, from_record, to_record
from .config import AppConfig, load_config_from_env
from .directory import DirectoryStoreError, SearchCriteria, UserDirectory

__all__ = [
    "AppConfig",
    "DirectoryStoreError",
    "Role",
    "SearchCriteria",
    "User",
    "UserDirectory",
    "from_record",
    "load_config_from_env",
    "to_record",
]
