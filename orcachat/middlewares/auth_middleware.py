from typing import List
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from orcachat.auth.dependencies import Authentication
from orcachat.auth.repository import identify_user_by_pid
from orcachat.common.constants import request_id_ctx
from orcachat.common.utils import build_error, json_error
from orcachat.middlewares.constants import logger


def _unauthorized(message: str):
    payload = build_error(code="INVALID_AUTH", details={"message": message}, request_id=request_id_ctx.get())
    return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED, headers={"WWW-Authenticate": "Bearer"})


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Resolves the bearer token to a local user id for every path outside `paths`.
    Downstream handlers read request.state.user_identifier.
    """

    def __init__(self, app, *, session_maker, paths: List[str]):
        super().__init__(app)
        self.session_maker = session_maker
        self.paths = paths

    async def dispatch(self, request: Request, call_next):

        if any(request.url.path.startswith(p) for p in self.paths):
            return await call_next(request)

        try:
            auth_token = await Authentication()(request)
        except Exception as e:
            reason = getattr(e, "detail", None) or getattr(e, "message", "Missing or Invalid Auth Headers")
            logger.warning("auth.middleware.failed", extra={
                "reason": reason,
                "path": request.url.path,
                "method": request.method
            })
            return _unauthorized("Missing or Invalid Auth Headers")

        user_pid = auth_token.get("sub")

        async with self.session_maker() as session:
            user_identifier = await identify_user_by_pid(session, user_pid)

        if not user_identifier:
            # token outlived its user
            logger.warning("auth.middleware.user_not_found", extra={
                "user_public_id": user_pid,
                "path": request.url.path
            })
            return _unauthorized("User unidentified and not authorized")

        request.state.user_identifier = user_identifier
        request.state.user_public_id = user_pid
        request.state.user_email = auth_token.get("email")

        logger.debug("auth.middleware.success", extra={
            "user_public_id": user_pid,
            "path": request.url.path
        })

        return await call_next(request)
