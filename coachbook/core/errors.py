"""
Domain exceptions and the FastAPI handlers that turn them into responses.

Routes and services raise these; nothing builds a failure body by hand.
Every failure leaves the API as ``{"status": "failed", "message": ...}``,
except unexpected errors which become a generic 500.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

INVALID_FIELDS_MESSAGE = "欄位未填寫正確"
SERVER_ERROR_MESSAGE = "伺服器錯誤"

# Custom pydantic error type whose message is shown to the caller verbatim.
FIELD_RULE_ERROR = "field_rule"


class DomainError(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = INVALID_FIELDS_MESSAGE

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


class ValidationError(DomainError):
    """Malformed or rule-breaking input."""


class NotFoundError(DomainError):
    """A referenced row does not exist. Surfaced as 400, like other input errors."""

    default_message = "資料不存在"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "資料重複"


class AuthError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "請先登入"


def _failed(status_code: int, message: str, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(
        {"status": "failed", "message": message},
        status_code=status_code,
        headers=headers,
    )


def _validation_message(errors: list[dict[str, Any]]) -> str:
    # Missing or mistyped fields win over rule messages (password rules etc).
    if not errors or any(err.get("type") != FIELD_RULE_ERROR for err in errors):
        return INVALID_FIELDS_MESSAGE
    return str(errors[0].get("msg") or INVALID_FIELDS_MESSAGE)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.message)
        return _failed(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _failed(status.HTTP_400_BAD_REQUEST, _validation_message(list(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else INVALID_FIELDS_MESSAGE
        return _failed(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            {"status": "error", "message": SERVER_ERROR_MESSAGE},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
