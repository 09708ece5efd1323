"""
Uniform error envelope.

Every error leaves the service as:

    {
      "status": "error",
      "error": {"name": "...", "message": "...", "code": "..."},
      "timestamp": "2025-01-01T00:00:00+00:00",
      "path": "/api/v1/project/1"
    }

Domain exceptions are mapped to status codes here so routers can simply raise
them; raw SQLAlchemy errors are translated rather than leaked.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError
from starlette.exceptions import HTTPException

from projecthub.identity import IdentityError
from projecthub.security.exceptions import AuthenticationError, AuthorizationError
from projecthub.storage.exceptions import AttachmentError, AttachmentErrorCode

logger = logging.getLogger(__name__)

_ATTACHMENT_STATUS = {
    AttachmentErrorCode.OWNER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AttachmentErrorCode.ATTACHMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AttachmentErrorCode.FILENAME_COLLISION: status.HTTP_409_CONFLICT,
    AttachmentErrorCode.DISK_WRITE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    AttachmentErrorCode.RECORD_PERSIST_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(
    request: Request,
    status_code: int,
    name: str,
    message: str,
    code: str | None = None,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    error: dict[str, Any] = {"name": name, "message": message}
    if code is not None:
        error["code"] = code
    error.update(extra)
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "error",
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": request.url.path,
        },
        headers=headers,
    )


async def _authentication_error(request: Request, exc: AuthenticationError) -> JSONResponse:
    return error_response(request, status.HTTP_401_UNAUTHORIZED, "AuthenticationError", exc.message, exc.code.value)


async def _authorization_error(request: Request, exc: AuthorizationError) -> JSONResponse:
    return error_response(request, status.HTTP_403_FORBIDDEN, "AuthorizationError", exc.message, exc.reason.value)


async def _attachment_error(request: Request, exc: AttachmentError) -> JSONResponse:
    status_code = _ATTACHMENT_STATUS[exc.code]
    if status_code >= 500:
        logger.error("Attachment failure path=%s code=%s", request.url.path, exc.code.value, exc_info=exc)
    return error_response(request, status_code, "AttachmentError", exc.message, exc.code.value)


async def _identity_error(request: Request, exc: IdentityError) -> JSONResponse:
    logger.warning("Identity provider request failed path=%s: %s", request.url.path, exc)
    return error_response(request, status.HTTP_502_BAD_GATEWAY, "IdentityError", str(exc))


async def _integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database constraint violated path=%s: %s", request.url.path, exc.orig)
    detail = str(exc.orig).lower()
    if "foreign key" in detail:
        return error_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            "IntegrityError",
            "Invalid reference to a related resource. Please ensure all related resources exist.",
        )
    return error_response(
        request,
        status.HTTP_409_CONFLICT,
        "IntegrityError",
        "Duplicate entry detected. Please use unique values.",
    )


async def _no_result(request: Request, exc: NoResultFound) -> JSONResponse:
    return error_response(request, status.HTTP_404_NOT_FOUND, "NotFound", "The requested resource was not found.")


async def _database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error path=%s", request.url.path, exc_info=exc)
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        type(exc).__name__,
        "A database error occurred. Please contact support if the problem persists.",
    )


async def _http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    return error_response(
        request,
        exc.status_code,
        "HTTPException",
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ValidationError",
        "Invalid data provided. Please check your input and try again.",
        details=jsonable_encoder(exc.errors()),
    )


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error path=%s", request.url.path)
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        type(exc).__name__,
        "An unexpected error occurred.",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthenticationError, _authentication_error)
    app.add_exception_handler(AuthorizationError, _authorization_error)
    app.add_exception_handler(AttachmentError, _attachment_error)
    app.add_exception_handler(IdentityError, _identity_error)
    app.add_exception_handler(IntegrityError, _integrity_error)
    app.add_exception_handler(NoResultFound, _no_result)
    app.add_exception_handler(SQLAlchemyError, _database_error)
    app.add_exception_handler(HTTPException, _http_exception)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unexpected_error)
