"""
Tests for the ASGI autoload middleware.
"""

import asyncio
import os
from typing import Any, Dict, List
from unittest.mock import patch

from opentelemetry import context as otel_context
from opentelemetry.context import _SUPPRESS_INSTRUMENTATION_KEY
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from otel_autoload.autoloader import has_run
from otel_autoload.middleware import AutoloadMiddleware, request_url
from otel_autoload.registry import get_tracer_provider, is_noop
from otel_autoload.request import current_request_url

ENABLED_ENV = {
    "OTEL_PYTHON_AUTOLOAD_ENABLED": "true",
    "OTEL_TRACES_EXPORTER": "none",
    "OTEL_METRICS_EXPORTER": "none",
    "OTEL_LOGS_EXPORTER": "none",
    "OTEL_PYTHON_EXCLUDED_URLS": "healthcheck",
}


async def inspect(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "url": current_request_url(),
            "live": not is_noop(get_tracer_provider()),
            "suppressed": bool(otel_context.get_value(_SUPPRESS_INSTRUMENTATION_KEY)),
        }
    )


def create_app() -> AutoloadMiddleware:
    app = Starlette(
        routes=[
            Route("/api/orders", inspect),
            Route("/healthcheck", inspect),
        ]
    )
    return AutoloadMiddleware(app)


class TestRequestUrl:
    """Tests for rebuilding the URL from an ASGI scope."""

    def test_path_only(self):
        assert request_url({"type": "http", "path": "/bar", "query_string": b""}) == "/bar"

    def test_path_and_query(self):
        scope = {"type": "http", "path": "/foo", "query_string": b"bar=baz"}
        assert request_url(scope) == "/foo?bar=baz"


class TestAutoloadMiddleware:
    """Tests for AutoloadMiddleware."""

    def test_first_request_activates(self):
        """Test that the first request runs autoload with its URL in context."""
        with patch.dict(os.environ, ENABLED_ENV, clear=True):
            client = TestClient(create_app())
            response = client.get("/api/orders?page=2")

        assert response.status_code == 200
        body = response.json()
        assert body["url"] == "/api/orders?page=2"
        assert body["live"] is True
        assert body["suppressed"] is False
        assert has_run() is True

    def test_excluded_first_request_does_not_disable_process(self):
        """Test that an excluded first request only suppresses itself."""
        with patch.dict(os.environ, ENABLED_ENV, clear=True):
            client = TestClient(create_app())
            first = client.get("/healthcheck").json()
            second = client.get("/api/orders").json()

        assert first["live"] is True
        assert first["suppressed"] is True
        assert second["live"] is True
        assert second["suppressed"] is False

    def test_later_excluded_request_is_suppressed(self):
        """Test that excluded requests after activation run with instrumentation suppressed."""
        with patch.dict(os.environ, ENABLED_ENV, clear=True):
            client = TestClient(create_app())
            client.get("/api/orders")
            response = client.get("/healthcheck")

        body = response.json()
        assert body["live"] is True
        assert body["suppressed"] is True

    def test_disabled_passes_through(self):
        """Test that a disabled gate leaves requests untouched."""
        with patch.dict(os.environ, {}, clear=True):
            client = TestClient(create_app())
            response = client.get("/healthcheck")

        body = response.json()
        assert body["live"] is False
        assert body["suppressed"] is False
        assert current_request_url() is None

    def test_unparseable_path_reaches_app(self):
        """Test that a path urlsplit rejects neither escapes nor skips the app."""
        calls: List[str] = []
        sent: List[Dict[str, Any]] = []

        async def app(scope, receive, send):
            calls.append(current_request_url())
            await send({"type": "http.response.start", "status": 204, "headers": []})
            await send({"type": "http.response.body", "body": b""})

        async def receive():
            return {"type": "http.request", "body": b"", "more_body": False}

        async def send(message):
            sent.append(message)

        scope = {"type": "http", "path": "//[x", "query_string": b"", "headers": []}

        with patch.dict(os.environ, {**ENABLED_ENV, "OTEL_PYTHON_EXCLUDED_URLS": "foo"}, clear=True):
            asyncio.run(AutoloadMiddleware(app)(scope, receive, send))

        assert calls == ["//[x"]
        assert sent[0]["status"] == 204
        assert not is_noop(get_tracer_provider())
