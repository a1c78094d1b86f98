"""
Current request URL.

Framework integrations publish the inbound request URL here so the exclusion
check can see it. Stored in a ContextVar so it is isolated per thread and per
asyncio task; outside a request (CLI, workers) it is None.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator, Optional

_request_url: ContextVar[Optional[str]] = ContextVar("otel_autoload_request_url", default=None)


def current_request_url() -> Optional[str]:
    return _request_url.get()


def set_request_url(url: Optional[str]) -> Token:
    return _request_url.set(url)


def clear_request_url(token: Token) -> None:
    _request_url.reset(token)


@contextmanager
def request_context(url: Optional[str]) -> Iterator[None]:
    """Make url the current request URL for the duration of the block."""
    token = set_request_url(url)
    try:
        yield
    finally:
        clear_request_url(token)
