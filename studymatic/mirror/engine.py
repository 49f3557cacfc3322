"""
Synchronisation engine: decide which studies are stale and mirror them.

Per study, within one run::

    PENDING ──fresh──▶ SKIPPED
       │
       └─stale──▶ FETCHING ──both artifacts ok──▶ MIRRORED
                      │
                      └─transport failure──▶ FAILED (+ backoff pause if
                                                      another study follows)

``FAILED`` leaves no fresh artifacts behind, so the next run's freshness
check selects the study again; nothing else records the failure.

Only :class:`~studymatic.errors.TransportError` is absorbed at the per-study
boundary. Catalog failures (:class:`~studymatic.errors.CatalogUnavailable`,
:class:`~studymatic.errors.NotFound`), serialization defects and local I/O
errors propagate to the caller.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Callable

import structlog

from studymatic.errors import TransportError
from studymatic.models import FetchResult, Study, StudyOutcome, StudyState, SyncReport

if TYPE_CHECKING:
    from studymatic.context import SyncContext

log = structlog.get_logger()


class SyncEngine:
    """Mirror a remote catalog through the collaborators held by *context*."""

    def __init__(self, context: "SyncContext") -> None:
        self.context = context
        self.client = context.client
        self.store = context.store
        self.serializer = context.serializer

    # ------------------------------------------------------------------ #
    # Entry points                                                       #
    # ------------------------------------------------------------------ #
    def sync_all(self) -> SyncReport:
        """Mirror every stale study in catalog order.

        Raises:
            CatalogUnavailable: When the study listing cannot be retrieved.
        """
        log.info("Fetching list of studies")
        studies = self.client.list_studies()

        report = SyncReport()
        for i, study in enumerate(studies):
            if self.store.is_stale(study):
                outcome = self._sync_study(study)
                report.add(outcome)
                # The pause only separates a failure from the next study.
                if outcome.state is StudyState.FAILED and i < len(studies) - 1:
                    self._back_off(study)
            else:
                log.info("Already mirrored", study=study.id, label=study.label)
                report.add(StudyOutcome(study.id, study.label, StudyState.SKIPPED))

        log.info("Sync finished", **report.summary())
        return report

    def sync_one(self, key: str) -> SyncReport:
        """Fetch the study *key* regardless of its local freshness.

        Raises:
            NotFound: When the catalog has no study *key*.
        """
        study = self.client.get_study(key)
        report = SyncReport()
        report.add(self._sync_study(study))
        return report

    # ------------------------------------------------------------------ #
    # Per-study pipeline                                                 #
    # ------------------------------------------------------------------ #
    def _sync_study(self, study: Study) -> StudyOutcome:
        log.info("Downloading", study=study.id, label=study.label, state=StudyState.FETCHING.value)

        # Independent attempts: a failed data export must not stop the
        # metadata attempt and vice versa.
        results = [
            self._attempt(self._mirror_data, study),
            self._attempt(self._mirror_metadata, study),
        ]
        errors = [str(r.error) for r in results if not r.ok]

        if not errors:
            log.info("Mirrored", study=study.id)
            return StudyOutcome(study.id, study.label, StudyState.MIRRORED)

        message = "; ".join(errors)
        log.error("Transport error", study=study.id, error=message)
        return StudyOutcome(study.id, study.label, StudyState.FAILED, error=message)

    @staticmethod
    def _attempt(step: Callable[[Study], Path], study: Study) -> FetchResult[Path]:
        """Run one artifact step, turning a transport failure into a result."""
        try:
            return FetchResult.success(step(study))
        except TransportError as exc:
            return FetchResult.failure(exc)

    def _mirror_data(self, study: Study) -> Path:
        return self.store.write_data_atomic(study, self.client.fetch_data(study))

    def _mirror_metadata(self, study: Study) -> Path:
        variables = self.client.fetch_variables(study)
        document = self.serializer.serialize(study.with_variables(variables))
        return self.store.write_metadata_atomic(study, document)

    def _back_off(self, study: Study) -> None:
        seconds = self.context.backoff_seconds
        if seconds <= 0:
            return
        log.warning("Ignoring error and backing off", study=study.id, seconds=seconds)
        self.context.sleep(seconds)
