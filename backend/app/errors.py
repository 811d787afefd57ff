"""API error type carrying a machine-readable code, and its JSON handler."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """An ``HTTPException`` rendered as ``{success, error, code}``.

    ``message`` is the user-facing (Arabic) text.
    """

    def __init__(self, message: str, status: int = 500, code: str | None = None):
        super().__init__(status_code=status, detail=message)
        self.message = message
        self.status = status
        self.code = code


def unauthorized() -> ApiError:
    return ApiError("غير مصرح. يرجى تسجيل الدخول", 401, "UNAUTHORIZED")


def forbidden(message: str = "غير مصرح. يجب أن تكون مديراً") -> ApiError:
    return ApiError(message, 403, "FORBIDDEN")


def limit_reached(message: str) -> ApiError:
    return ApiError(message, 403, "LIMIT_REACHED")


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    content = {"success": False, "error": exc.message}
    if exc.code:
        content["code"] = exc.code
    return JSONResponse(status_code=exc.status, content=content, headers=exc.headers)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
