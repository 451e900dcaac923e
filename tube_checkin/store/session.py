"""HTTP session factory for the data store REST endpoint.

The session owns the connection-level concerns: pooling, auth headers, a
default timeout and retrying failed connection attempts. Everything that
depends on a response (status codes, bodies) is retried by
``DataStoreClient.fetch_rows`` so it can be classified first.
"""

from __future__ import annotations

from typing import Any

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import (
    DATA_STORE_API_KEY,
    HTTP_POOL_CONNECTIONS,
    HTTP_POOL_MAXSIZE,
    REQUEST_TIMEOUT,
    STORE_CONNECT_RETRIES,
)

__all__ = ["StoreHTTPAdapter", "build_connect_retry", "create_default_session"]


def build_connect_retry(connect_retries: int = STORE_CONNECT_RETRIES) -> Retry:
    """Retry only failed connection attempts; never on a received status."""

    attempts = max(0, connect_retries)
    return Retry(
        total=attempts,
        connect=attempts,
        read=0,
        status=0,
        other=0,
        backoff_factor=0.5,
        allowed_methods=["GET"],
        raise_on_status=False,
    )


class StoreHTTPAdapter(HTTPAdapter):
    """Pooled adapter that applies a default timeout to every request."""

    def __init__(self, *, timeout: float = REQUEST_TIMEOUT, **kwargs: Any) -> None:
        self.timeout = timeout
        super().__init__(**kwargs)

    def send(self, request, **kwargs):  # type: ignore[override]
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().send(request, **kwargs)


def create_default_session(
    api_key: str | None = None,
    *,
    timeout: float = REQUEST_TIMEOUT,
    connect_retries: int = STORE_CONNECT_RETRIES,
) -> Session:
    """Build a session authenticated for the store's ``/rest/v1`` tables.

    ``api_key`` defaults to ``DATA_STORE_API_KEY``; with no key the auth
    headers are left off (useful against a local, unauthenticated backend).
    """

    key = DATA_STORE_API_KEY if api_key is None else api_key
    session = requests.Session()
    adapter = StoreHTTPAdapter(
        timeout=timeout,
        pool_connections=HTTP_POOL_CONNECTIONS,
        pool_maxsize=HTTP_POOL_MAXSIZE,
        max_retries=build_connect_retry(connect_retries),
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "Accept-Encoding": "gzip, deflate",
            "Accept": "application/json",
        }
    )
    if key:
        session.headers.update({"apikey": key, "Authorization": f"Bearer {key}"})
    return session
