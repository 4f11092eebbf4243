from typing import Any, Dict, Optional
from fastapi import FastAPI, HTTPException, Request,status
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import InterfaceError, OperationalError
from orcachat.common.constants import ERROR_SERVER, ERROR_STORE_UNAVAILABLE, ERROR_VALIDATION, request_id_ctx
from orcachat.common.logging_setup import get_logger
from orcachat.common.utils import build_error, json_error

logger = get_logger("orcachat.errors")


class AppError(Exception):
    """
    Base for failures that map onto a client-visible status and error code.
    Handlers turn these into the standard error envelope; nothing else is needed at raise sites.
    """
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = ERROR_SERVER
    message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.message
        if code:
            self.code = code
        self.details = details or {}
        self.headers = headers
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = ERROR_VALIDATION
    message = "Invalid request"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    message = "Unauthorized"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message = "Forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    message = "Conflict"


class InvalidOrExpired(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_OR_EXPIRED"
    message = "OTP invalid / expired"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    message = "Too many OTP requests. Try later."

    def __init__(self, retry_after: Optional[int] = None, reason: str = "destination"):
        self.retry_after = retry_after
        self.reason = reason
        if reason == "ip":
            super().__init__("Too many requests from this IP", code="RATE_LIMITED_IP",
                             details={"reason": reason})
        else:
            super().__init__(details={"reason": reason, "retry_after": retry_after},
                             headers={"Retry-After": str(retry_after)} if retry_after is not None else None)


class ExternalSendFailure(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "EXTERNAL_SEND_FAILURE"
    message = "Failed to send OTP"


class UpstreamError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "UPSTREAM_ERROR"
    message = "Model provider failure"


class StoreUnavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = ERROR_STORE_UNAVAILABLE
    message = "service unavailable (db)"


async def app_error_handler(request: Request, exc: AppError):
    rid = request_id_ctx.get(None)

    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request.app_error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_code": exc.code,
            "status_code": exc.status_code,
        },
    )

    details = {"message": exc.message, **exc.details}
    payload = build_error(code=exc.code, details=details, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=exc.headers)


async def store_unavailable_handler(request: Request, exc: Exception):
    rid = request_id_ctx.get(None)
    logger.error(
        "store.unavailable",
        extra={"path": request.url.path, "method": request.method},
        exc_info=exc,
    )
    payload = build_error(code=ERROR_STORE_UNAVAILABLE, details={"message": "service unavailable (db)"}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    payload = build_error(code=ERROR_SERVER, details={"message": "Internal Server Error"}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    logger.warning(
        "request.validation_failed",
        extra={
            "errors": exc.errors(),
            "path": request.url.path,
        },
    )

    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    payload = build_error(code=ERROR_VALIDATION, details={"message":"invalid request", "fields": fields}, request_id=rid)
    return json_error(payload, status_code=422)


async def http_exception_handler(request: Request, exc: HTTPException):

    rid = request_id_ctx.get(None)

    payload = build_error(code=f"HTTP_{exc.status_code}", details={"message":exc.detail}, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # catch all unidentified/unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        AppError,
        app_error_handler
    )

    for exc_cls in (OperationalError, InterfaceError):
        app.add_exception_handler(exc_cls, store_unavailable_handler)

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )
