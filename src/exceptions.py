"""Domain exception hierarchy for structured error responses."""

from __future__ import annotations


class AppException(Exception):
    """Base exception for all domain errors.

    Subclasses set ``code`` and ``status_code`` at the class level; callers
    provide ``message`` and an optional ``details`` list.
    """

    code: str = "APP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class NotFoundException(AppException):
    code = "NOT_FOUND"
    status_code = 404


class ConflictException(AppException):
    code = "CONFLICT"
    status_code = 409


class ForbiddenException(AppException):
    code = "FORBIDDEN"
    status_code = 403


class UnauthorizedException(AppException):
    code = "UNAUTHORIZED"
    status_code = 401


class ValidationException(AppException):
    code = "VALIDATION_ERROR"
    status_code = 422


class BusinessRuleException(AppException):
    code = "BUSINESS_RULE_VIOLATION"
    status_code = 422


class PreconditionFailedException(BusinessRuleException):
    """A state-specific guard rejected an otherwise legal transition."""

    code = "PRECONDITION_FAILED"


class InvalidTransitionException(AppException):
    """The transition table does not allow moving to the requested status."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(
        self,
        current_status: str,
        requested_status: str,
        allowed: list[str] | None = None,
        entity: str = "entity",
    ) -> None:
        allowed = allowed or []
        super().__init__(
            f"Cannot transition {entity} from '{current_status}' to '{requested_status}'. "
            f"Allowed transitions: {allowed}",
            details=[
                {
                    "current_status": current_status,
                    "requested_status": requested_status,
                    "allowed": allowed,
                }
            ],
        )
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = allowed


class RateLimitException(AppException):
    code = "RATE_LIMITED"
    status_code = 429
