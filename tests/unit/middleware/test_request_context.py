"""
Request Context Middleware Tests.

WHAT: Unit tests for the RequestContextMiddleware and the logging filter
that reads it.

WHY: Bulk action and worker log lines are tied back to their HTTP call
through the request id, so:
- An upstream X-Request-ID must be reused, otherwise one is minted
- The id must be visible to code that never sees the Request
- The context must be gone once the request ends

HOW: A minimal FastAPI app wrapped in the middleware, driven by httpx.
"""

import logging

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from rook.core.logging_config import RequestIdFilter
from rook.middleware.request_context import (
    REQUEST_ID_HEADER,
    RequestContextMiddleware,
    get_client_ip,
    get_request_context,
)


def _make_request(headers: dict = None, client_host: str = None) -> Request:
    scope = {
        "type": "http",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": (client_host, 12345) if client_host else None,
    }
    return Request(scope)


class TestGetClientIp:
    """Tests for the get_client_ip function."""

    def test_prefers_x_real_ip(self):
        request = _make_request(
            headers={"X-Real-IP": "192.168.1.100", "X-Forwarded-For": "203.0.113.50"},
            client_host="10.0.0.1",
        )
        assert get_client_ip(request) == "192.168.1.100"

    def test_first_forwarded_for_entry(self):
        request = _make_request(
            headers={"X-Forwarded-For": "203.0.113.50, 70.41.3.18"},
            client_host="10.0.0.1",
        )
        assert get_client_ip(request) == "203.0.113.50"

    def test_direct_connection(self):
        assert get_client_ip(_make_request(client_host="192.168.1.50")) == "192.168.1.50"

    def test_unknown_fallback(self):
        assert get_client_ip(_make_request()) == "unknown"


class TestRequestContextMiddleware:
    """Tests for request id propagation."""

    @pytest.fixture
    def app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestContextMiddleware)

        @app.get("/echo")
        async def echo():
            ctx = get_request_context()
            return {"request_id": ctx.request_id, "path": ctx.path, "method": ctx.method}

        return app

    async def _get(self, app: FastAPI, headers: dict = None):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            return await ac.get("/echo", headers=headers or {})

    async def test_generates_request_id(self, app):
        response = await self._get(app)

        request_id = response.headers[REQUEST_ID_HEADER]
        assert len(request_id) == 36
        assert response.json()["request_id"] == request_id

    async def test_reuses_upstream_request_id(self, app):
        response = await self._get(app, headers={REQUEST_ID_HEADER: "gateway-123"})

        assert response.headers[REQUEST_ID_HEADER] == "gateway-123"
        assert response.json() == {"request_id": "gateway-123", "path": "/echo", "method": "GET"}

    async def test_context_cleared_after_request(self, app):
        await self._get(app)
        assert get_request_context() is None


class TestRequestIdFilter:
    """The logging filter tags records with the current request id."""

    def test_outside_request_uses_dash(self):
        record = logging.LogRecord("rook", logging.INFO, __file__, 1, "msg", None, None)

        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "-"
