"""Object storage exceptions."""


class StorageError(Exception):
    """Base error for object storage issues."""


class StorageConfigError(StorageError):
    """Raised when credentials, endpoint or bucket are not configured."""


class StorageTransferError(StorageError):
    """Raised when an upload, download or listing fails."""
