"""Shared fixtures for the studymatic test-suite.

No test touches the network: the catalog is replaced by
:class:`catalog_fakes.FakeCatalogClient`, and HTTP-level tests monkeypatch
``requests``.
"""

import pytest

from studymatic.context import SyncContext
from studymatic.mirror.store import LocalMirrorStore


@pytest.fixture
def store(tmp_path):
    return LocalMirrorStore(tmp_path / "mirror")


@pytest.fixture
def sleeps():
    """Records every backoff pause requested by the engine."""
    return []


@pytest.fixture
def make_context(store, sleeps):
    def _make(client, backoff_seconds=10.0):
        return SyncContext(
            client=client,
            store=store,
            backoff_seconds=backoff_seconds,
            sleep=sleeps.append,
        )

    return _make
