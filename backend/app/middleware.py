"""Request context middleware for structured logging and session tracking."""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.constants import SESSION_HEADER


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request_id and session_id to structlog context vars.

    The session id comes from the X-Session-ID header; a new one is issued
    when the client has none yet. Both ids are echoed on the response.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(uuid.uuid4())
        session_id = request.headers.get(SESSION_HEADER) or str(uuid.uuid4())
        request.state.session_id = session_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, session_id=session_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        response.headers[SESSION_HEADER] = session_id

        structlog.contextvars.clear_contextvars()
        return response
