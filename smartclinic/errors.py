"""
Error kinds surfaced to RPC callers.

Every failure a procedure can report carries a machine-readable ``code`` and a
human-readable message; the HTTP layer maps ``status`` onto the response.
"""

from typing import Any, Iterable, List, Optional


class ProcedureError(Exception):
    """Base class for failures that are reported verbatim to the caller."""
    code = "INTERNAL_SERVER_ERROR"
    status = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[List[Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class Unauthenticated(ProcedureError):
    """No resolvable session on a non-public procedure."""
    code = "UNAUTHORIZED"
    status = 401
    default_message = "Authentication required"


class Forbidden(ProcedureError):
    """Session resolved, but the role or the ownership check does not allow the call."""
    code = "FORBIDDEN"
    status = 403
    default_message = "Access denied"

    def __init__(self, message: Optional[str] = None, role: Optional[str] = None,
                 required: Optional[Iterable[str]] = None):
        self.role = role
        self.required = tuple(required) if required else ()
        if message is None and role is not None:
            message = f"Access denied for role '{role}'. Required: {', '.join(self.required)}"
        super().__init__(message)


class NotFound(ProcedureError):
    code = "NOT_FOUND"
    status = 404
    default_message = "Not found"


class ValidationError(ProcedureError):
    """Input failed its schema or references a record that does not exist."""
    code = "VALIDATION_ERROR"
    status = 400
    default_message = "Invalid input"


class MethodNotSupported(ProcedureError):
    code = "METHOD_NOT_SUPPORTED"
    status = 405
    default_message = "Method not supported"
