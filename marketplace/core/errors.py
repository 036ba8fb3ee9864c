"""Error hierarchy for the plan and entitlement engine.

Every error carries a stable ``code`` (see ``ErrorKind``) and an HTTP-style
``status_code`` so a host can map it onto its own transport.
"""

from enum import Enum
from typing import Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    CATALOG_FULL = "catalog_full"
    CANNOT_DELETE_BUILTIN = "cannot_delete_builtin"
    PLAN_NOT_FOUND = "plan_not_found"
    SELLER_NOT_FOUND = "seller_not_found"
    INVALID_DATE_RANGE = "invalid_date_range"


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code


class ValidationError(AppError, ValueError):
    """One or more field-level problems, all collected before raising."""
    code = ErrorKind.VALIDATION.value
    status_code = 400

    def __init__(self, message: str = "Validation failed", *, field_errors: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field_errors: Dict[str, str] = dict(field_errors or {})


class NotFoundError(AppError, LookupError):
    code = "not_found"
    status_code = 404


class PlanNotFoundError(NotFoundError):
    code = ErrorKind.PLAN_NOT_FOUND.value

    def __init__(self, plan_id: str, message: Optional[str] = None):
        super().__init__(message or f"Plan {plan_id} not found")
        self.plan_id = plan_id


class SellerNotFoundError(NotFoundError):
    code = ErrorKind.SELLER_NOT_FOUND.value


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class CatalogFullError(ConflictError):
    code = ErrorKind.CATALOG_FULL.value


class CannotDeleteBuiltinError(ConflictError):
    code = ErrorKind.CANNOT_DELETE_BUILTIN.value

    def __init__(self, plan_id: str):
        super().__init__(f"Built-in plan {plan_id} cannot be deleted")
        self.plan_id = plan_id


class InvalidDateRangeError(AppError, ValueError):
    code = ErrorKind.INVALID_DATE_RANGE.value
    status_code = 400


def error_payload(exc: AppError) -> dict:
    """Render an engine error the way a host would return it to a client."""
    body = {"code": exc.code, "message": exc.message}
    field_errors = getattr(exc, "field_errors", None)
    if field_errors:
        body["fields"] = dict(field_errors)
    return {"error": body, "detail": exc.message}
