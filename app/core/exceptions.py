"""
Domain exceptions raised by the service layer.

Every exception carries the HTTP status and a stable error_code; the handlers in
app.core.errors turn them into the standard JSON error envelope.
"""
from typing import Any, Dict, Optional


class AppException(Exception):
    status_code = 400
    error_code = "BUSINESS_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(AppException):
    status_code = 404
    error_code = "NOT_FOUND"


class UnauthorizedActorError(AppException):
    """The caller is not the actor the record expects (e.g. wrong approver)."""
    status_code = 403
    error_code = "UNAUTHORIZED"


class InvalidStateError(AppException):
    status_code = 400
    error_code = "INVALID_STATE"


class PrecedenceViolationError(AppException):
    status_code = 409
    error_code = "PRECEDENCE_VIOLATION"

    def __init__(self, message: str = "Previous approval steps must be completed first", details=None):
        super().__init__(message, details)


class InsufficientBalanceError(AppException):
    status_code = 400
    error_code = "INSUFFICIENT_BALANCE"


class DuplicateCarryForwardError(AppException):
    status_code = 409
    error_code = "DUPLICATE_CARRY_FORWARD"

    def __init__(self, message: str = "Carry forward already processed for this period", details=None):
        super().__init__(message, details)


class BalanceNotFoundError(NotFoundError):
    error_code = "BALANCE_NOT_FOUND"


class ConflictError(AppException):
    status_code = 409
    error_code = "CONFLICT"


class ConcurrentModificationError(ConflictError):
    error_code = "CONCURRENT_MODIFICATION"

    def __init__(self, message: str = "Record was modified by another request, retry the operation", details=None):
        super().__init__(message, details)
