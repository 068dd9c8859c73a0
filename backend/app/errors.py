"""Error taxonomy shared by the budget engine and the HTTP layer."""

from fastapi import HTTPException


class BudgetEngineError(Exception):
    code = "ENGINE_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(BudgetEngineError, ValueError):
    """Bad input shape or a self-inconsistent budget range. Nothing was written."""

    code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(BudgetEngineError):
    """Overlapping budget, or a transition on an already-terminal imported transaction."""

    code = "CONFLICT"
    status_code = 409


class NotFoundError(BudgetEngineError):
    code = "NOT_FOUND"
    status_code = 404


def to_http(exc: BudgetEngineError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": exc.message},
    )
