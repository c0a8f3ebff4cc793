"""
Domain exceptions.

Services raise these instead of HTTPException so they can be called outside a
request. main.py registers one handler that renders any AppError as JSON using
the status_code and message carried on the exception.
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class ValidationError(AppError):
    """Malformed or missing input; carries field-level errors"""
    status_code = 400
    message = "Validation failed"

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "errors": self.errors}


class ConflictError(AppError):
    status_code = 409
    message = "Resource already exists"


class AuthError(AppError):
    status_code = 401
    message = "Unauthenticated"


class NotFoundError(AppError):
    status_code = 404
    message = "Not found"


class UpstreamError(AppError):
    """The Openverse API failed or answered with a non-2xx status"""
    status_code = 502
    message = "Error fetching media"

    def __init__(self, message: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status

    def to_dict(self) -> Dict[str, Any]:
        body = {"message": self.message}
        if self.upstream_status is not None:
            body["status"] = self.upstream_status
        return body


class UpstreamTimeoutError(UpstreamError):
    status_code = 504
    message = "Media search timed out"


class UpstreamDecodeError(UpstreamError):
    """The Openverse response did not match the expected envelope"""
    message = "Unexpected response from media provider"


class PersistenceError(AppError):
    status_code = 500
    message = "Database error occurred"
