"""Authentication and request correlation middleware."""

from __future__ import annotations

import logging
import uuid
from typing import Awaitable, Callable

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from jobdesk.dependencies.auth import User, resolve_user_from_token

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _unauthorized(detail: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": detail},
        headers={REQUEST_ID_HEADER: request_id},
    )


class RBACMiddleware(BaseHTTPMiddleware):
    """Resolve the bearer token into ``request.state.user`` and tag the request id."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        authorization = request.headers.get("Authorization")
        token: str | None = None
        if authorization:
            scheme, _, credentials = authorization.partition(" ")
            if scheme.lower() != "bearer":
                return _unauthorized("Invalid authentication credentials", request_id)
            token = credentials or None

        try:
            user: User = resolve_user_from_token(token)
        except HTTPException as exc:
            logger.warning("rejected bearer token", extra={"path": request.url.path, "request_id": request_id})
            return _unauthorized(str(exc.detail), request_id)

        request.state.user = user
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
