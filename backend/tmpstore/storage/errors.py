"""Exceptions raised by the blob store."""


class BlobStoreError(Exception):
    """Base exception for blob store errors."""

    def __init__(self, message: str, name: str | None = None):
        super().__init__(message)
        self.name = name


class InitializationError(BlobStoreError):
    """The store could not be set up (directory missing, not writable, bad limits)."""

    pass


class AlreadyExists(BlobStoreError):
    """A blob with this name is already stored or being stored."""

    pass


class NotFound(BlobStoreError):
    """No blob with this name is stored."""

    pass


class PayloadTooLarge(BlobStoreError):
    """The payload is larger than the store accepts."""

    def __init__(self, message: str, size: int, limit: int, name: str | None = None):
        super().__init__(message, name=name)
        self.size = size
        self.limit = limit


class InvalidName(BlobStoreError):
    """The name cannot be mapped to a file inside the store directory."""

    pass


class BlobIOError(BlobStoreError):
    """Reading, writing or removing a blob file failed."""

    pass
