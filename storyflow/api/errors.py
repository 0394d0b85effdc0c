"""Maps exceptions to the ``{success, message, errors}`` response envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import StoryflowError, TransientError

logger = logging.getLogger(__name__)


def envelope(status_code: int, message: str, errors=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "errors": errors or []},
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoryflowError)
    async def handle_storyflow_error(request: Request, exc: StoryflowError) -> JSONResponse:
        if isinstance(exc, TransientError):
            logger.warning(f"{request.method} {request.url.path} unavailable: {exc.message}")
        elif exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        response = JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        if exc.status_code == 401:
            response.headers["WWW-Authenticate"] = "Bearer"
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return envelope(400, "Validation failed", errors)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return envelope(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return envelope(500, "Internal server error")
