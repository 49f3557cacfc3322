"""
Light-weight HTTP helpers for interacting with the catalog REST API.

Only the low-level mechanics of *sending* a request belong here; no parsing or
business logic is performed. Keeping URL construction, headers and the token
parameter in one place lets :mod:`studymatic.api.session` and
:mod:`studymatic.api.catalog` stay focused on semantics.

All helpers return the raw ``requests.Response`` object so that callers can
decide how to handle status codes, JSON decoding and streaming.

Functions
---------
catalog_get
    Perform an optionally token-authenticated ``GET`` request.
catalog_post
    Perform an optionally token-authenticated ``POST`` request.
"""

import os
from typing import Any, Dict, Optional

import requests

DEFAULT_TIMEOUT = 60.0


def _default_timeout() -> Optional[float]:
    """Return the timeout configured via ``STUDYMATIC_TIMEOUT`` or ``DEFAULT_TIMEOUT``."""
    env = os.getenv("STUDYMATIC_TIMEOUT")
    if not env:
        return DEFAULT_TIMEOUT
    try:
        return float(env)
    except ValueError:
        return DEFAULT_TIMEOUT


def build_url(base_url: str, endpoint: str) -> str:
    """Join *base_url* and *endpoint* with exactly one slash."""
    return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"


def catalog_get(
    base_url: str,
    endpoint: str,
    token: Optional[str] = None,
    params: Optional[Dict[str, Any]] = None,
    *,
    timeout: Optional[float] = None,
    stream: bool = False,
) -> requests.Response:
    """Send a GET request to the catalog API.

    Args:
        base_url: Root URL of the catalog (e.g. ``"https://nesstar.example.org/api"``).
        endpoint: Path relative to *base_url* (e.g. ``"studies/NSD1234"``).
        token: Session token; omitted from the query for anonymous sessions.
        params: Additional query parameters.
        timeout: Request timeout in seconds. Falls back to
            ``$STUDYMATIC_TIMEOUT`` or :data:`DEFAULT_TIMEOUT`.
        stream: Defer downloading the body (used for data exports).

    Returns:
        The raw :class:`requests.Response` object.
    """
    params = dict(params or {})
    if token:
        params["api_token"] = token

    headers = {"Accept": "application/json"}

    if timeout is None:
        timeout = _default_timeout()

    # No exception handling here; let callers decide how to react.
    return requests.get(
        build_url(base_url, endpoint),
        headers=headers,
        params=params,
        timeout=timeout,
        stream=stream,
    )


def catalog_post(
    base_url: str,
    endpoint: str,
    token: Optional[str] = None,
    *,
    data: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> requests.Response:
    """Send a form-encoded POST request to the catalog API.

    Args:
        base_url: Root URL of the catalog.
        endpoint: Endpoint relative to *base_url*.
        token: Optional session token.
        data: Form fields.
        timeout: Request timeout in seconds.

    Returns:
        The raw :class:`requests.Response` object.
    """
    params = {"api_token": token} if token else {}
    headers = {"Accept": "application/json"}

    if timeout is None:
        timeout = _default_timeout()

    return requests.post(
        build_url(base_url, endpoint),
        headers=headers,
        params=params,
        data=data,
        timeout=timeout,
    )
