"""Exception → HTTP mapping, in one place.

Learn: Services raise DomainError subclasses carrying a stable ErrorKind.
This module is the only place that knows which status code each kind
becomes, and it renders every error in the same envelope:

    {"status_code": 401, "error": "unauthorized", "message": "...", "success": false}
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from vidtube.errors import AuthError, DomainError, ErrorKind

logger = structlog.get_logger()

KIND_TO_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INFRASTRUCTURE: 500,
}

_STATUS_TO_KIND = {status: kind for kind, status in KIND_TO_STATUS.items()}


def error_response(status_code: int, kind: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "status_code": status_code,
            "error": kind,
            "message": message,
            "success": False,
        },
        headers={"WWW-Authenticate": "Bearer"} if status_code == 401 else None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope handlers on the app."""

    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError):
        status_code = KIND_TO_STATUS[exc.kind]
        log_fn = logger.error if status_code >= 500 else logger.info
        log_fn(
            "request.failed",
            path=request.url.path,
            method=request.method,
            status_code=status_code,
            error=exc.kind.value,
            reason=exc.reason if isinstance(exc, AuthError) else exc.message,
        )
        return error_response(status_code, exc.kind.value, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        message = f"Invalid request: {', '.join(fields)}" if fields else "Invalid request"
        return error_response(400, ErrorKind.VALIDATION.value, message)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        kind = _STATUS_TO_KIND.get(exc.status_code, ErrorKind.VALIDATION)
        if exc.status_code >= 500:
            kind = ErrorKind.INFRASTRUCTURE
        return error_response(exc.status_code, kind.value, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("request.unhandled", path=request.url.path, method=request.method)
        return error_response(500, ErrorKind.INFRASTRUCTURE.value, "Something went wrong")
