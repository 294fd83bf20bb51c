"""
FastAPI exception handlers.

Maps ProxyError subclasses to HTTP responses. Everything unrecognized falls
through to a generic 500 that only exposes the message and stack trace
outside production.
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from epayco_proxy.config import Settings
from epayco_proxy.errors import (
    InvalidAmountError,
    ProxyError,
    RemoteLookupNotFound,
    RemoteValidationError,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"

ERROR_STATUS: dict[type[ProxyError], int] = {
    InvalidAmountError: HTTP_400_BAD_REQUEST,
    RemoteLookupNotFound: HTTP_404_NOT_FOUND,
}


def get_http_status_for_error(exc: ProxyError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return HTTP_500_INTERNAL_SERVER_ERROR


def error_body(exc: Exception, settings: Settings) -> dict:
    if settings.is_production:
        return {"success": False, "error": GENERIC_ERROR_MESSAGE}
    message = exc.message if isinstance(exc, ProxyError) else str(exc)
    return {
        "success": False,
        "error": message or GENERIC_ERROR_MESSAGE,
        "stack": "".join(traceback.format_exception(exc)),
    }


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    async def remote_validation_handler(request: Request, exc: RemoteValidationError) -> JSONResponse:
        # ePayco's error contract goes back to the caller untouched
        return JSONResponse(status_code=HTTP_400_BAD_REQUEST, content=exc.payload)

    async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
        status_code = get_http_status_for_error(exc)
        if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=status_code, content=error_body(exc, settings))
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status_code, content={"success": False, "error": exc.message})

    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=HTTP_500_INTERNAL_SERVER_ERROR, content=error_body(exc, settings))

    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        error = "Endpoint not found" if exc.status_code == HTTP_404_NOT_FOUND and exc.detail == "Not Found" else exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": error},
            headers=getattr(exc, "headers", None),
        )

    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": "Invalid request body",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    app.add_exception_handler(RemoteValidationError, remote_validation_handler)
    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
