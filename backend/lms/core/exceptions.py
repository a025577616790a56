class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationFailedError(AppError):
    """Raised when a request passes schema validation but breaks a business rule."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class AuthorizationFailedError(AppError):
    """Raised when the caller may not act on a resource."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ConflictError(AppError):
    """Raised when a write would violate the current state of a resource."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)
