from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class AuthenticationError(AppException):
    """No usable session was supplied by the identity provider."""
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="UNAUTHORIZED"
        )

class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND"
        )

class AccessDeniedError(AppException):
    """Authenticated, but not the owner or an active member of the workspace."""
    def __init__(self, message: str = "Access denied to workspace"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="ACCESS_DENIED"
        )

class InsufficientPermissionError(AppException):
    """Workspace member lacking the capability required by the operation."""
    def __init__(self, message: str = "Insufficient permissions", permission: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=403,
            error_code="INSUFFICIENT_PERMISSION",
            details={"permission": permission} if permission else None
        )

class ValidationError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details
        )

class ConflictError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details
        )

class StateError(AppException):
    """Transition attempted from a status that does not allow it."""
    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="INVALID_STATE",
            details={"current_status": current_status} if current_status else None
        )
