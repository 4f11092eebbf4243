import contextvars
from typing import Optional

# request id of the request being served, set by RequestIdMiddleware
request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)

ERROR_SERVER = "SERVER_ERROR"
ERROR_VALIDATION = "VALIDATION_ERROR"
ERROR_STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
