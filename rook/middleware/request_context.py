"""
Request context middleware.

WHAT: Middleware that extracts request context (IP address, user agent, request ID)
and makes it available throughout the request lifecycle.

WHY: Ticket mutations and bulk device actions are logged from services and
DAOs that never see the Request object. A ContextVar lets them (and the
logging filter) pick up the request id without threading it through every
call.

HOW: Stores the context in request.state for handlers and in a ContextVar
for everything else, and echoes the id back as X-Request-ID.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class RequestContext:
    """
    Container for request-scoped context data.

    Fields:
    - request_id: Caller-supplied X-Request-ID or a fresh UUID4
    - ip_address: Client's real IP (considering proxies)
    - user_agent: Client's browser/application identifier
    - path: Request path
    - method: HTTP method
    """

    request_id: str
    ip_address: str
    user_agent: Optional[str]
    path: str
    method: str


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """
    Get the current request context.

    Returns:
        RequestContext if within a request, None otherwise (e.g. scheduler jobs)
    """
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Extract the real client IP address from a request.

    HOW: Checks headers in order of trust:
    1. X-Real-IP (set by nginx-style proxies)
    2. X-Forwarded-For (first entry is the original client)
    3. request.client.host (direct connection IP)

    Security Note:
        These headers can be spoofed if the service is not behind a proxy
        that overwrites them.
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures and stores request context.

    WHY: Reusing an upstream X-Request-ID keeps one id across the gateway
    and this service; otherwise a new UUID4 is minted.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        context = RequestContext(
            request_id=request_id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            path=request.url.path,
            method=request.method,
        )

        request.state.context = context
        token = _request_context.set(context)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _request_context.reset(token)
