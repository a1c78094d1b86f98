"""
ASGI integration.

AutoloadMiddleware runs autoload() once, outside any request URL, so the
process-wide decision never depends on which request happens to arrive first.
Each request then gets its path and query published as the current request URL,
and requests that match the exclusion rules run with instrumentation suppressed.
"""

import logging
from typing import Optional

from opentelemetry import context as otel_context
from opentelemetry.context import _SUPPRESS_INSTRUMENTATION_KEY
from starlette.types import ASGIApp, Receive, Scope, Send

from otel_autoload.autoloader import SdkAutoloader, get_autoloader
from otel_autoload.request import request_context

logger = logging.getLogger(__name__)


def request_url(scope: Scope) -> str:
    """Rebuild the path and query string of an ASGI request."""
    path = scope.get("path") or "/"
    query_string = scope.get("query_string", b"")
    if query_string:
        return f"{path}?{query_string.decode('latin-1')}"
    return path


class AutoloadMiddleware:
    """Pure ASGI middleware that drives the autoload gate.

    Example:
        app = FastAPI()
        app.add_middleware(AutoloadMiddleware)
    """

    def __init__(self, app: ASGIApp, autoloader: Optional[SdkAutoloader] = None):
        self.app = app
        self.autoloader = autoloader if autoloader is not None else get_autoloader()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        self.autoloader.autoload()

        url = request_url(scope)
        with request_context(url):
            if not self.autoloader.is_excluded_request(url):
                await self.app(scope, receive, send)
                return

            token = otel_context.attach(otel_context.set_value(_SUPPRESS_INSTRUMENTATION_KEY, True))
            try:
                await self.app(scope, receive, send)
            finally:
                otel_context.detach(token)
