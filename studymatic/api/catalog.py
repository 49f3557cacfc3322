"""
High-level client for the remote study catalog.

:class:`RemoteCatalogClient` turns the raw responses returned by
:mod:`studymatic.api.client` into typed records and maps every failure onto
the package's error taxonomy:

=====================  ==========================================
Operation              Failure raised
=====================  ==========================================
``list_studies``       :class:`~studymatic.errors.CatalogUnavailable`
``get_study``          :class:`~studymatic.errors.NotFound` (HTTP 404),
                       :class:`~studymatic.errors.CatalogUnavailable`
``fetch_data``         :class:`~studymatic.errors.TransportError`
``fetch_variables``    :class:`~studymatic.errors.TransportError`
=====================  ==========================================

Endpoints (relative to the session's base URL)::

    GET studies                          -> [study, ...]
    GET studies/<id>                     -> study
    GET studies/<id>/variables           -> [variable, ...]
    GET studies/<id>/download?format=csv -> zip bytes (streamed)
"""

from __future__ import annotations

from typing import Any, Iterator, List, Type
from urllib.parse import quote

import requests
import structlog

from studymatic.errors import CatalogUnavailable, NotFound, StudymaticError, TransportError
from studymatic.models import Study, Variable

from .client import catalog_get
from .session import CatalogSession

log = structlog.get_logger()

CHUNK_SIZE = 1024 * 1024


def _study_endpoint(study_id: str, *parts: str) -> str:
    """Return ``studies/<quoted id>[/parts…]``."""
    return "/".join(["studies", quote(study_id, safe=""), *parts])


def _unwrap_list(payload: Any, key: str) -> List[Any]:
    """Accept either a bare JSON list or an object wrapping it under *key*."""
    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    if isinstance(payload, list):
        return payload
    raise ValueError(f"expected a list of {key}, got {type(payload).__name__}")


def check_unique_variables(study_id: str, variables: List[Variable]) -> List[Variable]:
    """Return *variables* unchanged, or raise if two share an identifier.

    Raises:
        TransportError: The catalog repeated a variable id for *study_id*.
    """
    seen = set()
    for var in variables:
        if var.id in seen:
            raise TransportError(f"Catalog returned variable id {var.id!r} twice for {study_id}")
        seen.add(var.id)
    return variables


class RemoteCatalogClient:
    """Typed access to one catalog through an explicit :class:`CatalogSession`."""

    def __init__(self, session: CatalogSession) -> None:
        self.session = session

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    def _get(self, endpoint: str, error_cls: Type[StudymaticError], **kwargs) -> requests.Response:
        """Issue a GET and translate network failures into *error_cls*."""
        try:
            return catalog_get(
                self.session.base_url,
                endpoint,
                self.session.token,
                timeout=self.session.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as exc:
            raise error_cls(f"GET {endpoint} failed: {exc}") from exc

    def _get_json(self, endpoint: str, error_cls: Type[StudymaticError]) -> Any:
        resp = self._get(endpoint, error_cls)
        if resp.status_code >= 400:
            raise error_cls(f"GET {endpoint} returned HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise error_cls(f"GET {endpoint} returned malformed JSON: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def list_studies(self) -> List[Study]:
        """Return every study in the catalog, in catalog order.

        Raises:
            CatalogUnavailable: When the listing cannot be retrieved or parsed.
        """
        payload = self._get_json("studies", CatalogUnavailable)
        try:
            studies = [Study.model_validate(item) for item in _unwrap_list(payload, "studies")]
        except ValueError as exc:
            raise CatalogUnavailable(f"Malformed study listing: {exc}") from exc
        log.debug("Fetched study listing", count=len(studies))
        return studies

    def get_study(self, study_id: str) -> Study:
        """Return the study identified by *study_id*.

        Raises:
            NotFound: When the catalog has no such study.
            CatalogUnavailable: For any other failure.
        """
        endpoint = _study_endpoint(study_id)
        resp = self._get(endpoint, CatalogUnavailable)
        if resp.status_code == 404:
            raise NotFound(f"Study {study_id!r} not found in catalog")
        if resp.status_code >= 400:
            raise CatalogUnavailable(f"GET {endpoint} returned HTTP {resp.status_code}")
        try:
            return Study.model_validate(resp.json())
        except ValueError as exc:
            raise CatalogUnavailable(f"Malformed study record for {study_id!r}: {exc}") from exc

    def fetch_variables(self, study: Study) -> List[Variable]:
        """Return the ordered variables (with categories) of *study*.

        Raises:
            TransportError: When the request fails, the payload is malformed,
                or a variable id appears more than once.
        """
        payload = self._get_json(_study_endpoint(study.id, "variables"), TransportError)
        try:
            variables = [Variable.model_validate(item) for item in _unwrap_list(payload, "variables")]
        except ValueError as exc:
            raise TransportError(f"Malformed variables for {study.id}: {exc}") from exc
        return check_unique_variables(study.id, variables)

    def fetch_data(self, study: Study) -> Iterator[bytes]:
        """Open the CSV export of *study* and return an iterator of byte chunks.

        The request is sent immediately so HTTP errors surface here; the body
        is streamed lazily while the caller consumes the iterator.

        Raises:
            TransportError: On request failure, on an error status, or (from
                the iterator) when the stream breaks mid-download.
        """
        endpoint = _study_endpoint(study.id, "download")
        resp = self._get(endpoint, TransportError, params={"format": "csv"}, stream=True)
        if resp.status_code >= 400:
            resp.close()
            raise TransportError(f"GET {endpoint} returned HTTP {resp.status_code}")
        return self._iter_chunks(study, resp)

    @staticmethod
    def _iter_chunks(study: Study, resp: requests.Response) -> Iterator[bytes]:
        try:
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"Download of {study.id} interrupted: {exc}") from exc
        finally:
            resp.close()
