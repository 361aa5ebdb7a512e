class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class InvalidIntervalError(AppError):
    """Raised when a time interval is empty, reversed or out of the day's range."""
    def __init__(self, message: str, start=None, end=None):
        super().__init__(message, status_code=400, details={"start": start, "end": end})
        self.start = start
        self.end = end

class PersistFailure(AppError):
    """Raised when the store rejects a staged batch. Nothing from the batch was applied."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=502, details=details)

class StagingLimitError(AppError):
    """Raised when a grid already holds the maximum number of pending keys."""
    def __init__(self, grid: str, limit: int):
        super().__init__(
            f"Grid {grid} already has {limit} pending changes",
            status_code=400,
            details={"grid": grid, "limit": limit},
        )

class UnknownFieldError(AppError):
    """Raised when an edit names a field the grid does not carry, or the wrong kind of field."""
    def __init__(self, grid: str, field: str, reason: str = "unknown field"):
        super().__init__(
            f"{reason.capitalize()} '{field}' for grid {grid}",
            status_code=400,
            details={"grid": grid, "field": field},
        )

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)
