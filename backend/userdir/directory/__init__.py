"""Durable, asynchronous storage and search for directory users."""

from .criteria import SearchCriteria
from .errors import DirectoryStoreError
from .store import UserDirectory

__all__ = ["DirectoryStoreError", "SearchCriteria", "UserDirectory"]
