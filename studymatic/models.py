"""
Domain-level data models shared by the catalog client, the mirror and the CLI.

The module provides:

* **Catalog records** (`Study`, `Variable`, `Category`) – immutable Pydantic
  snapshots of what the remote catalog returned during this run.
* **`MirrorDocument`** – the canonical metadata document written next to each
  study's data export.
* **`MirrorEntry`** – the locally inferred state of one study's artifacts.
  It is recomputed from the filesystem on demand and never stored.
* Per-run bookkeeping (`StudyState`, `StudyOutcome`, `SyncReport`,
  `FetchResult`) used by :class:`studymatic.mirror.engine.SyncEngine`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, field_validator

_T = TypeVar("_T")


def _as_text(v: Any) -> Any:
    """Coerce numeric identifiers/codes to their text form."""
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    return v


# --------------------------------------------------------------------------- #
# 1 – Catalog records                                                         #
# --------------------------------------------------------------------------- #
class Category(BaseModel, frozen=True):
    """One coded value/label pair inside a variable's value domain."""

    id: str
    label: Optional[str] = None
    value: Optional[str] = None

    @field_validator("id", "value", mode="before")
    @classmethod
    def _numbers_as_text(cls, v):
        return _as_text(v)


class Variable(BaseModel, frozen=True):
    """A named data column of a study together with its coded categories."""

    id: str
    label: Optional[str] = None
    name: Optional[str] = None
    categories: List[Category] = []

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v):
        return _as_text(v)

    @field_validator("categories", mode="before")
    @classmethod
    def _null_categories(cls, v):
        return [] if v is None else v


class Study(BaseModel, frozen=True):
    """Read-only snapshot of a study record in the remote catalog.

    Attributes:
        id: Catalog-unique, stable identifier. Used verbatim in filenames.
        label: Human-readable title.
        timestamp: Last remote modification. Always timezone-aware; naive
            values are interpreted as UTC.
        variables: Ordered variables. Empty when the study came from a
            listing and its variables have not been fetched yet.
    """

    id: str
    label: Optional[str] = None
    timestamp: datetime
    variables: List[Variable] = []

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v):
        return _as_text(v)

    @field_validator("timestamp")
    @classmethod
    def _aware_timestamp(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def with_variables(self, variables: List[Variable]) -> "Study":
        """Return a copy of this study carrying *variables*."""
        return self.model_copy(update={"variables": list(variables)})


class MirrorDocument(BaseModel, frozen=True):
    """Canonical metadata document stored as ``<id>-meta.json``.

    Variables are keyed by identifier; catalog order is not preserved.
    """

    id: str
    label: Optional[str]
    timestamp: str
    variables: Dict[str, Variable]


# --------------------------------------------------------------------------- #
# 2 – Local mirror state                                                      #
# --------------------------------------------------------------------------- #
@dataclass(slots=True, frozen=True)
class MirrorEntry:
    """Inspected state of one study's local artifacts.

    Attributes:
        data_path: Location of the ``-data.csv.zip`` artifact.
        metadata_path: Location of the ``-meta.json`` artifact.
        data_written: Last-write time of the data artifact, ``None`` when
            the file does not exist.
        metadata_written: Same for the metadata artifact.
    """

    data_path: Path
    metadata_path: Path
    data_written: Optional[datetime] = None
    metadata_written: Optional[datetime] = None

    def is_fresh_for(self, study: Study) -> bool:
        """Return ``True`` only when *both* artifacts postdate *study*."""
        return (
            self.data_written is not None
            and self.metadata_written is not None
            and self.data_written > study.timestamp
            and self.metadata_written > study.timestamp
        )


# --------------------------------------------------------------------------- #
# 3 – Per-run bookkeeping                                                     #
# --------------------------------------------------------------------------- #
class StudyState(str, Enum):
    """Lifecycle of a study within one run."""

    PENDING = "pending"
    SKIPPED = "skipped"
    FETCHING = "fetching"
    MIRRORED = "mirrored"
    FAILED = "failed"


@dataclass(slots=True)
class FetchResult(Generic[_T]):
    """Outcome of one artifact attempt (data or metadata)."""

    ok: bool
    value: Optional[_T] = None
    error: Optional[Exception] = None

    @classmethod
    def success(cls, value: Optional[_T] = None) -> "FetchResult[_T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> "FetchResult[_T]":
        return cls(ok=False, error=error)


@dataclass(slots=True)
class StudyOutcome:
    """Final state of one study after a run."""

    study_id: str
    label: Optional[str]
    state: StudyState
    error: Optional[str] = None


@dataclass
class SyncReport:
    """Ordered outcomes of one :class:`SyncEngine` run."""

    outcomes: List[StudyOutcome] = field(default_factory=list)

    def add(self, outcome: StudyOutcome) -> None:
        self.outcomes.append(outcome)

    def _with_state(self, state: StudyState) -> List[StudyOutcome]:
        return [o for o in self.outcomes if o.state is state]

    @property
    def mirrored(self) -> List[StudyOutcome]:
        return self._with_state(StudyState.MIRRORED)

    @property
    def skipped(self) -> List[StudyOutcome]:
        return self._with_state(StudyState.SKIPPED)

    @property
    def failed(self) -> List[StudyOutcome]:
        return self._with_state(StudyState.FAILED)

    def summary(self) -> Dict[str, int]:
        """Return counts per final state plus the total."""
        return {
            "total": len(self.outcomes),
            "mirrored": len(self.mirrored),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }
