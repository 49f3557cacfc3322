"""Explicit per-run wiring for :class:`studymatic.mirror.engine.SyncEngine`.

A :class:`SyncContext` bundles the authenticated catalog client, the mirror
store, the serializer and the failure policy. Nothing is kept at module
level, so independent runs (e.g. in tests) never share state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from studymatic.api.catalog import RemoteCatalogClient
from studymatic.api.session import authenticate
from studymatic.config_loader import Settings
from studymatic.mirror.serializer import MetadataSerializer
from studymatic.mirror.store import LocalMirrorStore

DEFAULT_BACKOFF = 10.0


@dataclass
class SyncContext:
    """Collaborators and policy for one sync run.

    Attributes:
        client: Catalog client bound to an authenticated session.
        store: Mirror rooted at the configured output directory.
        serializer: Metadata document builder.
        backoff_seconds: Pause after a study's transport failure.
        sleep: Callable used for the pause; replaced in tests.
    """

    client: RemoteCatalogClient
    store: LocalMirrorStore
    serializer: MetadataSerializer = field(default_factory=MetadataSerializer)
    backoff_seconds: float = DEFAULT_BACKOFF
    sleep: Callable[[float], None] = time.sleep


def build_context(settings: Settings) -> SyncContext:
    """Authenticate against the configured catalog and return a context.

    Raises:
        ConfigurationError: When no server is configured.
        AuthError: When the credentials are rejected.
    """
    server = settings.require_server()
    session = authenticate(
        server,
        settings.username,
        settings.password,
        timeout=settings.timeout,
    )
    return SyncContext(
        client=RemoteCatalogClient(session),
        store=LocalMirrorStore(settings.output_dir),
        backoff_seconds=settings.backoff_seconds,
    )
