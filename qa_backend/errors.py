"""
Failure taxonomy for backend operations.

Each error carries the HTTP status and a stable machine-readable code so the
front-end can tell "log in" apart from "not allowed" and "gone".
"""

from __future__ import annotations


class QaError(Exception):
    status_code = 500
    code = "INTERNAL"
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class Unauthenticated(QaError):
    status_code = 401
    code = "UNAUTHENTICATED"
    default_message = "Authentication required"


class AccountDisabled(QaError):
    status_code = 403
    code = "ACCOUNT_DISABLED"
    default_message = "Account is not active"


class Forbidden(QaError):
    status_code = 403
    code = "PERMISSION_DENIED"
    default_message = "You don't have permission to access this resource"


class InvalidArgument(QaError):
    status_code = 400
    code = "INVALID_ARGUMENT"
    default_message = "Invalid argument"


class NotFound(QaError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"
