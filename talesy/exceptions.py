"""
Domain errors raised by the Talesy services.

Each error carries the HTTP status the route layer answers with; the mapping
to responses lives in ``talesy.main``.
"""
from typing import Optional


class TalesyError(Exception):
    status_code: int = 500
    default_detail: str = "Internal error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidIdentifier(TalesyError, ValueError):
    status_code = 400
    default_detail = "Invalid identifier"


class InvalidInput(TalesyError, ValueError):
    status_code = 400
    default_detail = "Invalid input"


class InvalidOperation(TalesyError, ValueError):
    status_code = 400
    default_detail = "Operation not allowed"


class Unauthorized(TalesyError):
    status_code = 401
    default_detail = "Could not validate credentials"


class Forbidden(TalesyError):
    status_code = 403
    default_detail = "Forbidden"


class NotFound(TalesyError):
    status_code = 404
    default_detail = "Not found"


class StoreFailure(TalesyError):
    status_code = 503
    default_detail = "Storage backend failure"
