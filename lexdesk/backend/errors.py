"""
Backend error types.

Codes follow the PostgREST/Postgres conventions the application checks for,
most importantly NOT_FOUND_CODE for "single row expected, none found".
"""

from typing import Any, Optional

NOT_FOUND_CODE = "PGRST116"
MULTIPLE_ROWS_CODE = "PGRST116"
UNKNOWN_FUNCTION_CODE = "PGRST202"
UNKNOWN_COLUMN_CODE = "PGRST204"
UNKNOWN_TABLE_CODE = "42P01"
UNIQUE_VIOLATION_CODE = "23505"
FOREIGN_KEY_VIOLATION_CODE = "23503"
NOT_NULL_VIOLATION_CODE = "23502"
STORAGE_DUPLICATE_CODE = "409"
STORAGE_NOT_FOUND_CODE = "404"


class BackendError(Exception):
    """Error returned by a backend call (table, rpc or storage)."""

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code, "details": self.details}


class RowNotFound(BackendError):
    """Raised by single() when the query matched no row."""

    def __init__(self, message: str = "JSON object requested, multiple (or no) rows returned", details: Any = None):
        super().__init__(message, code=NOT_FOUND_CODE, details=details)


class AuthApiError(BackendError):
    """Error from the auth provider (bad credentials, duplicate user, ...)."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message, code=str(status))
        self.status = status


def is_not_found(error: BaseException) -> bool:
    return isinstance(error, BackendError) and error.code == NOT_FOUND_CODE
