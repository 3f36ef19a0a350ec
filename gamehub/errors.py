"""
Domain error taxonomy for gamehub services.

Services raise these for business rule violations; the HTTP layer in
``gamehub.main`` maps each class to a status code. Every error carries a
human readable ``message``, a structured ``details`` dict and a stable
``error_code`` for programmatic handling.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for every error raised by the gamehub core."""

    default_code = "domain_error"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details: Dict[str, Any] = details or {}
        self.error_code = error_code or self.default_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "detail": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


class ValidationError(DomainError):
    """Malformed or missing input. The caller has to fix the request."""

    default_code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message, details={"field": field} if field else None)


class NotFoundError(DomainError):
    default_code = "not_found"

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"
        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
        )


class InvalidStateError(DomainError):
    """The entity exists but its status forbids the requested transition."""

    default_code = "invalid_state"


class ConflictError(DomainError):
    """A uniqueness or duplication rule was violated."""

    default_code = "conflict"


class ResourceExhaustedError(DomainError):
    """A bounded resource (superlike budget, submission cap) is depleted."""

    default_code = "resource_exhausted"

    def __init__(self, resource: str, message: Optional[str] = None, limit: Optional[int] = None) -> None:
        self.resource = resource
        self.limit = limit
        details: Dict[str, Any] = {"resource": resource}
        if limit is not None:
            details["limit"] = limit
        super().__init__(message or f"No {resource} remaining", details=details)


class QuotaExceededError(ResourceExhaustedError):
    """Per-user cap on outstanding submissions reached."""

    default_code = "quota_exceeded"


class UnauthorizedError(DomainError):
    default_code = "unauthorized"

    def __init__(self, message: str = "Authentication required.") -> None:
        super().__init__(message)


class ForbiddenError(DomainError):
    default_code = "forbidden"

    def __init__(self, message: str = "Forbidden.") -> None:
        super().__init__(message)


class StorageError(DomainError):
    """The entity store failed for infrastructural reasons. Nothing was written."""

    default_code = "storage_error"
