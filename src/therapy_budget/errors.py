"""Domain errors for the therapy budget service.

Services raise these; routes let them propagate and the handler registered
in ``main.py`` renders them as ``{"error": {"code", "message"}}`` responses.

Over- and under-allocation are not errors. They are returned as
``AllocationDecision`` values from the allocation policy.
"""

from enum import Enum

from fastapi import Request
from fastapi.responses import JSONResponse


class ErrorCode(str, Enum):
    """Stable machine-readable error codes."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION_FAILED = "validation_failed"


class TherapyBudgetError(Exception):
    """Base class for all domain errors raised by the service layer."""

    status_code: int = 500

    def __init__(self, message: str, error_code: ErrorCode) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class NotFoundError(TherapyBudgetError):
    """A requested plan, item, or catalog entry does not exist."""

    status_code = 404

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NOT_FOUND) -> None:
        super().__init__(message, error_code)


class ConflictError(TherapyBudgetError):
    """The request conflicts with existing state (e.g. duplicate item code)."""

    status_code = 409

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.CONFLICT) -> None:
        super().__init__(message, error_code)


class BudgetValidationError(TherapyBudgetError):
    """A business validation rule rejected the request."""

    status_code = 422

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.VALIDATION_FAILED) -> None:
        super().__init__(message, error_code)


async def therapy_budget_error_handler(request: Request, exc: TherapyBudgetError) -> JSONResponse:
    """Render a domain error as a JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.error_code.value, "message": exc.message}},
    )
