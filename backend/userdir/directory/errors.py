"""Custom exceptions for the directory store."""


class DirectoryStoreError(Exception):
    """Raised when the store cannot be opened or a transaction fails."""
