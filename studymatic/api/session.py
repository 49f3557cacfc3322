"""
Session helpers for authenticating against the remote catalog.

The catalog accepts anonymous reads; a username/password ``POST`` to
``/session`` yields a token that is then passed as the ``api_token`` query
parameter. :func:`authenticate` hides that choice behind a single
:class:`CatalogSession` value that the rest of the package receives
explicitly, so several independent sessions can coexist in one process.

Authentication failures (rejected credentials, unreachable endpoint, a reply
without a token) all surface as :class:`studymatic.errors.AuthError`, which
the CLI treats as fatal before any work is done.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import requests
import structlog

from studymatic.errors import AuthError

from .client import catalog_post

log = structlog.get_logger()


@dataclass(frozen=True)
class CatalogSession:
    """Authenticated (or anonymous) connection parameters.

    Attributes:
        base_url: Root URL of the catalog API.
        token: Session token, ``None`` for anonymous sessions.
        timeout: Per-request timeout in seconds; ``None`` defers to
            ``$STUDYMATIC_TIMEOUT``.
        username: Login used to obtain *token* (for log messages only).
    """

    base_url: str
    token: Optional[str] = None
    timeout: Optional[float] = None
    username: Optional[str] = None

    @property
    def anonymous(self) -> bool:
        return self.token is None


def create_session(
    base_url: str,
    username: str,
    password: str,
    *,
    timeout: Optional[float] = None,
) -> str:
    """Return a fresh token obtained via ``POST /session``.

    Args:
        base_url: Root URL of the catalog.
        username: Account name.
        password: Account password.
        timeout: Request timeout in seconds.

    Returns:
        The token string.

    Raises:
        AuthError: If the credentials are rejected, the endpoint cannot be
            reached, or the reply carries no token.
    """
    try:
        resp = catalog_post(
            base_url,
            "session",
            data={"login": username, "password": password},
            timeout=timeout,
        )
    except requests.exceptions.RequestException as exc:
        raise AuthError(f"Could not reach {base_url} to log in: {exc}") from exc

    if resp.status_code in (401, 403):
        raise AuthError(f"Credentials for {username!r} were rejected (HTTP {resp.status_code})")
    try:
        resp.raise_for_status()
        payload = resp.json()
    except (requests.exceptions.HTTPError, ValueError) as exc:
        raise AuthError(f"Unexpected session response: {exc}") from exc

    token = None
    if isinstance(payload, dict):
        token = payload.get("token") or payload.get("api_token")
    if not token:
        raise AuthError(f"Unexpected session response: {payload}")

    log.debug("Retrieved new catalog token", user=username)
    return token


def authenticate(
    base_url: str,
    username: Optional[str] = None,
    password: Optional[str] = None,
    *,
    timeout: Optional[float] = None,
) -> CatalogSession:
    """Return a :class:`CatalogSession` for *base_url*.

    The session is anonymous unless **both** *username* and *password* are
    supplied.

    Raises:
        AuthError: Propagated from :func:`create_session`.
    """
    if not (username and password):
        log.debug("Using anonymous catalog session", server=base_url)
        return CatalogSession(base_url=base_url, timeout=timeout)

    log.info("Logging in", user=username, server=base_url)
    token = create_session(base_url, username, password, timeout=timeout)
    return CatalogSession(base_url=base_url, token=token, timeout=timeout, username=username)
