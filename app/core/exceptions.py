"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class InvalidTransitionException(AppException):
    """Illegal appointment status change."""

    def __init__(self, current: str, requested: str, message: str | None = None):
        """Initialize with the current and requested statuses and 409 status code."""
        self.current = current
        self.requested = requested
        super().__init__(
            message or f"Invalid status transition from '{current}' to '{requested}'",
            status_code=409,
        )


class StorageException(AppException):
    """Underlying persistence failure."""

    def __init__(self, message: str = "Storage error"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)
