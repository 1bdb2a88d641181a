# Application errors and their HTTP rendering

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

logger = structlog.get_logger()


class AppError(Exception):
    """Base error carrying an HTTP status and a client-facing message"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error: str | None = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def __str__(self) -> str:
        if self.error:
            return f"{self.message}: {self.error}"
        return self.message


class BadRequestError(AppError):
    """Malformed or out-of-range client input"""

    status_code = status.HTTP_400_BAD_REQUEST


class QueryExecutionError(AppError):
    """The store rejected or failed to run a query"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class StoreUnavailableError(QueryExecutionError):
    """The store could not be reached or did not answer in time"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def error_body(message: str, error: str | None = None) -> dict:
    body = {"success": False, "message": message}
    if error:
        body["error"] = error
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error)
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )
    logger.warning("request_validation_failed", path=request.url.path, errors=details)
    return JSONResponse(
        status_code=422,
        content=error_body("Validation failed", details)
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error", path=request.url.path, error=repr(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error")
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
