"""Standardised error payloads shared by every failing response."""

from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

VALIDATION_FAILED = "Validation failed"
INTERNAL_ERROR_MESSAGE = "An internal server error occurred"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ErrorPayload(BaseModel):
    """The single JSON shape returned for every error."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    message: str
    details: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


def error_response(
    status_code: int,
    message: str,
    details: Optional[str] = None,
    *,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    payload = ErrorPayload(status_code=status_code, message=message, details=details)
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(mode="json", by_alias=True),
        headers=headers,
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Request could not be validated"


def register_exception_handlers(app: FastAPI) -> None:
    """Map framework-raised errors onto :class:`ErrorPayload` responses."""

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            VALIDATION_FAILED,
            _describe_validation_error(exc),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        try:
            message = HTTPStatus(exc.status_code).phrase
        except ValueError:
            message = "Request failed"
        return error_response(
            exc.status_code,
            message,
            str(exc.detail) if exc.detail is not None else None,
            headers=dict(exc.headers) if exc.headers else None,
        )


__all__ = [
    "ErrorPayload",
    "INTERNAL_ERROR_MESSAGE",
    "VALIDATION_FAILED",
    "error_response",
    "register_exception_handlers",
]
