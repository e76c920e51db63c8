"""Application exception taxonomy.

Services raise these; ``app.main`` renders any ``AppError`` as
``{"error": {"code", "message", "details"}}`` with its ``status_code``.
Framework errors (unknown routes, request validation, rate limits, unhandled
exceptions) are rendered through ``error_body`` in the same shape.
"""
from typing import Any


def error_body(code: str, message: str, details: Any | None = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details}}


class AppError(Exception):
    """Base class for every error the API reports deliberately.

    Attributes:
        code: Stable machine-readable code, e.g. ``"NOT_FOUND"``.
        message: Human-readable message, safe to show to the caller.
        status_code: HTTP status the error maps to.
        details: Structured context the caller needs to correct its input.
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Any | None = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        return error_body(self.code, self.message, self.details)


class Unauthorized(AppError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFound(AppError):
    """Entity is missing or belongs to someone else. Both look the same."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found")


class ParseError(AppError):
    """The uploaded CSV could not be parsed. ``details`` lists every issue."""

    status_code = 400
    code = "CSV_PARSE_ERROR"

    def __init__(self, issues: list):
        self.issues = list(issues)
        super().__init__(
            "CSV parsing failed",
            details=[issue.to_dict() for issue in self.issues],
        )


class InvalidUpload(AppError):
    """Upload rejected before parsing: no file, not a CSV, or empty."""

    status_code = 400
    code = "INVALID_UPLOAD"


class UploadTooLarge(AppError):
    status_code = 413
    code = "FILE_TOO_LARGE"

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File exceeds {limit // (1024 * 1024)} MB limit",
            details={"size": size, "limit": limit},
        )


class MappingValidationError(AppError):
    """Field mapping breaks one or more rules. ``details`` maps field key -> reason."""

    status_code = 422
    code = "MAPPING_INVALID"

    def __init__(self, errors: dict):
        self.errors = dict(errors)
        super().__init__(
            "Field mapping is invalid",
            details={key: issue.to_dict() for key, issue in self.errors.items()},
        )


class StorageError(AppError):
    """Backing store failure. The message stays generic; the cause is only logged."""

    status_code = 500
    code = "STORAGE_ERROR"

    def __init__(self, message: str = "Storage operation failed. Please try again."):
        super().__init__(message)
