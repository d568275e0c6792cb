"""
LocalSpots Backend - Request ID Middleware
============================================

What:  Assigns a correlation ID to each request and echoes it in X-Request-ID.
How:   Reuses a client-supplied X-Request-ID when it looks sane, otherwise
       generates a short UUID. The ID is stored in a ContextVar so that the
       access log and the exception handlers can include it.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on the same event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client IDs end up in log lines; keep them short and printable
_CLIENT_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Take X-Request-ID from the request if it matches _CLIENT_ID
        2. Otherwise generate an 8-character hex ID
        3. Store it in request_id_var and request.state.request_id
        4. Return it in the X-Request-ID response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get("X-Request-ID", "")
        rid = supplied if _CLIENT_ID.match(supplied) else new_request_id()

        # Not reset after the call: the catch-all error handler runs outside
        # call_next and still needs the ID
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
