"""
Typed failures raised by the service layer.

Every class maps to one transport status; the API blueprint turns them into
``{"error": kind, "code": status, "message": ...}`` responses. Anything that
is not a ``ServiceError`` is treated as an internal failure.
"""


class ServiceError(RuntimeError):
    """Recoverable service error (validation/uniqueness/etc.)."""

    kind = "service_error"
    status_code = 400

    def __init__(self, message: str = "", details: list | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict:
        payload = {"error": self.kind, "code": self.status_code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(ServiceError):
    kind = "validation_error"
    status_code = 400


class Unauthorized(ServiceError):
    kind = "unauthorized"
    status_code = 401


class Forbidden(ServiceError):
    kind = "forbidden"
    status_code = 403


class NotFound(ServiceError):
    kind = "not_found"
    status_code = 404


class Conflict(ServiceError):
    kind = "conflict"
    status_code = 409
