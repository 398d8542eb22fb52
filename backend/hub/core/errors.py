"""Error taxonomy shared by every service.

Services raise these; only the HTTP adapter turns them into responses, via
ERROR_STATUS_RULES below.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException, status


class HubError(Exception):
    """Base class; `code` is stable and safe to expose to clients."""

    code = "hub_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(HubError):
    code = "validation_error"


class InvalidRating(ValidationError):
    code = "invalid_rating"


class InvalidRoleAttributes(ValidationError):
    code = "invalid_role_attributes"


class ConflictError(HubError):
    code = "conflict"


class DuplicateEmail(ConflictError):
    code = "duplicate_email"


class DuplicateConstraint(ConflictError):
    code = "duplicate_constraint"


class InvalidTransition(HubError):
    code = "invalid_transition"


class AlreadyCanceled(InvalidTransition):
    code = "already_canceled"


class NotFound(HubError):
    code = "not_found"


class TargetNotFound(NotFound):
    code = "target_not_found"


class PermissionDenied(HubError):
    code = "permission_denied"


class AuthenticationFailed(HubError):
    code = "authentication_failed"


class ExternalDependencyError(HubError):
    code = "external_dependency_error"

    def __init__(self, message: str, retry_after_seconds: Optional[float] = 1.0, **details: Any):
        super().__init__(message, **details)
        self.retry_after_seconds = retry_after_seconds


class ExternalCheckTimeout(ExternalDependencyError):
    code = "external_check_timeout"


# (error class, HTTP status). First match wins, so subclasses come first
# only where they need a different status than their parent.
ERROR_STATUS_RULES: list[tuple[type[HubError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (AuthenticationFailed, status.HTTP_401_UNAUTHORIZED),
    (ExternalDependencyError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def hub_error_to_http(exc: HubError) -> HTTPException:
    """Map a HubError onto an HTTPException carrying its code and message."""
    headers = None
    if isinstance(exc, ExternalDependencyError) and exc.retry_after_seconds is not None:
        headers = {"Retry-After": str(max(1, round(exc.retry_after_seconds)))}
    for error_cls, status_code in ERROR_STATUS_RULES:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=status_code, detail=exc.to_dict(), headers=headers)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.to_dict())
