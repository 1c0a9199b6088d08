"""Shared HTTP client management for connection pooling.

The portal session (cookies, headers) belongs to the caller. This module
only builds clients with the configured timeouts and pool limits.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from tracker.app.core.config import settings


# Shared HTTP client for connection pooling
_shared_http_client: httpx.AsyncClient | None = None


def _default_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.httpx_connect_timeout,
        read=settings.httpx_read_timeout,
        write=settings.httpx_write_timeout,
        pool=settings.httpx_pool_timeout,
    )


def _default_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )


def get_http_client() -> httpx.AsyncClient:
    """Get the shared HTTP client instance.

    Raises:
        RuntimeError: If the HTTP client has not been initialized.
    """
    if _shared_http_client is None:
        raise RuntimeError(
            "HTTP client not initialized. Wrap startup in init_http_client()."
        )
    return _shared_http_client


@asynccontextmanager
async def init_http_client(**client_kwargs) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    Extra keyword arguments (``cookies``, ``headers``...) are passed to
    ``httpx.AsyncClient`` so the caller can attach an authenticated session:

        async with init_http_client(cookies=session_cookies) as client:
            source = HttpMarkupSource(client, role_id="3")
    """
    global _shared_http_client

    _shared_http_client = httpx.AsyncClient(
        timeout=_default_timeout(), limits=_default_limits(), **client_kwargs
    )

    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None


def create_http_client(**kwargs) -> httpx.AsyncClient:
    """Create a new HTTP client with default settings.

    The returned client should be closed when done:
        async with create_http_client() as client:
            ...

    Args:
        **kwargs: Override default settings. Can include:
            - timeout: Single timeout value (overrides all granular timeouts)
            - connect_timeout / read_timeout / write_timeout / pool_timeout
            - cookies, headers: forwarded to httpx.AsyncClient

    Returns:
        A new httpx.AsyncClient instance.
    """
    timeout_override = kwargs.pop("timeout", None)
    if timeout_override is not None:
        timeout = httpx.Timeout(timeout_override)
    else:
        timeout = httpx.Timeout(
            connect=kwargs.pop("connect_timeout", settings.httpx_connect_timeout),
            read=kwargs.pop("read_timeout", settings.httpx_read_timeout),
            write=kwargs.pop("write_timeout", settings.httpx_write_timeout),
            pool=kwargs.pop("pool_timeout", settings.httpx_pool_timeout),
        )
    return httpx.AsyncClient(timeout=timeout, limits=_default_limits(), **kwargs)
