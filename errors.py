"""Error taxonomy shared by the ledger, the HTTP layer and the client objects."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ValidationError(RuntimeError):
    """Raised when incoming data fails validation."""

    status_code = 400


class AuthenticationError(RuntimeError):
    """Raised when a token is missing, invalid or expired."""

    status_code = 401


class NotFoundError(RuntimeError):
    """Raised when a referenced record does not exist."""

    status_code = 404


class NetworkError(RuntimeError):
    """Transport failure talking to the backend; never treated as an auth failure."""


class ApiError(RuntimeError):
    """Non-2xx answer from the backend."""

    def __init__(self, status_code: int, message: str = ""):
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)


def register_exception_handlers(app: FastAPI) -> None:
    async def domain_error(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "detail": str(exc)})

    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "detail": "Server error"})

    for exc_class in (ValidationError, AuthenticationError, NotFoundError):
        app.add_exception_handler(exc_class, domain_error)
    app.add_exception_handler(Exception, unexpected_error)
