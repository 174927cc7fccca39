"""Shared exceptions for service layer operations."""


class StorageUnavailableError(Exception):
    """
    Raised when a storage operation fails after schema initialization gave up.

    The readiness gate was released without a known-good schema, so database
    errors at this point are fatal rather than transient and should not be
    retried.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class EngineClosedError(Exception):
    """Raised when an operation is invoked before open() or after close()."""

    def __init__(self) -> None:
        super().__init__("Bookmark engine is not open")


class BookmarkImportError(Exception):
    """Raised when an export document cannot be parsed; the whole import is aborted."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidCollectionParentError(Exception):
    """Raised when a collection's parent is not a live collection in the same profile."""

    def __init__(self, parent_id: str, profile_id: str) -> None:
        self.parent_id = parent_id
        self.profile_id = profile_id
        super().__init__(
            f"Parent collection not found in profile '{profile_id}': {parent_id}",
        )
