"""
  Exception handlers

  Every error leaves the API as an ErrorResponse body:

      {"timestamp": "...", "status": 404, "error": "Not Found",
       "message": "Product not found with slug: x", "errors": null}

  Request validation failures become 400 with one message per field.
"""
import logging
from http import HTTPStatus
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nicecommerce.api.schemas.common import ErrorResponse
from nicecommerce.domain.exceptions import NiceCommerceError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str,
                   errors: Optional[dict[str, str]] = None) -> JSONResponse:
    body = ErrorResponse(
        status=status_code,
        error=HTTPStatus(status_code).phrase,
        message=message,
        errors=errors,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _field_name(loc) -> str:
    # drop the "body" / "query" / "header" / "path" prefix
    parts = [str(part) for part in loc[1:]] or [str(part) for part in loc]
    return ".".join(parts)


async def handle_domain_error(request: Request, exc: NiceCommerceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Unhandled domain error on %s: %s", request.url.path, exc.message)
    else:
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, str] = {}
    for error in exc.errors():
        errors.setdefault(_field_name(error.get("loc", ())), error.get("msg", "Invalid value"))
    logger.warning("Validation failed on %s: %s", request.url.path, errors)
    return error_response(400, "Validation failed", errors)


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s", request.url.path)
    return error_response(500, "An unexpected error occurred")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NiceCommerceError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
