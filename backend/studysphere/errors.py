# backend/studysphere/errors.py
"""
Error envelope rendering.

Every failure leaves the API as ``{success: false, message, error?: {code, details}}``
with the HTTP status carrying the category. Unhandled exceptions never echo
their text to the caller.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)


def _code_from_status(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        500: "INTERNAL_SERVER_ERROR",
        502: "BAD_GATEWAY",
    }
    return mapping.get(status_code, "ERROR")


def _envelope(
    *,
    message: str,
    code: Optional[str] = None,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if code:
        body["error"] = {
            "code": code,
            "details": jsonable_encoder(details) if details is not None else {},
        }
    return body


def _parse_detail(detail: Any) -> tuple[Optional[str], Optional[str], Optional[Any]]:
    if isinstance(detail, dict):
        code = detail.get("code") if isinstance(detail.get("code"), str) else None
        message = detail.get("message") or detail.get("detail")
        detail_text = message if isinstance(message, str) else None
        details = detail.get("details")
        return detail_text, code, details
    if isinstance(detail, str):
        return detail, None, None
    if detail is None:
        return None, None, None
    return str(detail), None, None


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        message, code, details = _parse_detail(exc.detail)
        return JSONResponse(
            _envelope(
                message=message or _code_from_status(exc.status_code).replace("_", " ").title(),
                code=code or _code_from_status(exc.status_code),
                details=details,
            ),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        # Domain errors that escaped a route's handle_domain_exception
        http_exc = exc.to_http_exception()
        message, code, details = _parse_detail(http_exc.detail)
        return JSONResponse(
            _envelope(message=message or exc.message, code=code, details=details),
            status_code=http_exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return JSONResponse(
            _envelope(
                message="Request validation failed",
                code="validation_error",
                details={"errors": errors},
            ),
            status_code=400,
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return JSONResponse(
            _envelope(
                message="Validation failed",
                code="validation_error",
                details={"errors": errors},
            ),
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            _envelope(message="Internal Server Error", code="internal_server_error"),
            status_code=500,
        )
