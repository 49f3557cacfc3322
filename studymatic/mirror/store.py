"""
Local storage for mirrored studies.

Each study owns two files directly under the configured root::

    <root>/<study-id>-data.csv.zip   # opaque tabular export
    <root>/<study-id>-meta.json      # canonical metadata document

Freshness is *inferred* from the files' modification times; nothing else is
recorded on disk. A study counts as mirrored only when **both** files exist
and both were written after the study's remote timestamp, so a run that got
one artifact but not the other is retried in full next time.

Writes go to a ``.part`` sibling first and are moved into place with
:meth:`pathlib.Path.replace`, so readers never observe a half-written
artifact and a failed download leaves the previous copy untouched.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

import structlog

from studymatic.models import MirrorEntry, Study

log = structlog.get_logger()

DATA_SUFFIX = "-data.csv.zip"
METADATA_SUFFIX = "-meta.json"
PART_SUFFIX = ".part"


def _written_at(path: Path) -> Optional[datetime]:
    """Return the UTC modification time of *path*, or ``None`` if missing."""
    try:
        mtime = path.stat().st_mtime
    except FileNotFoundError:
        return None
    return datetime.fromtimestamp(mtime, tz=timezone.utc)


class LocalMirrorStore:
    """Filesystem view of the mirror rooted at *root*."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    # ------------------------------------------------------------------ #
    # Paths                                                              #
    # ------------------------------------------------------------------ #
    def data_path(self, study: Study) -> Path:
        return self.root / f"{study.id}{DATA_SUFFIX}"

    def metadata_path(self, study: Study) -> Path:
        return self.root / f"{study.id}{METADATA_SUFFIX}"

    # ------------------------------------------------------------------ #
    # Freshness                                                          #
    # ------------------------------------------------------------------ #
    def entry(self, study: Study) -> MirrorEntry:
        """Inspect the artifacts of *study*; missing files are not an error."""
        data_path = self.data_path(study)
        metadata_path = self.metadata_path(study)
        return MirrorEntry(
            data_path=data_path,
            metadata_path=metadata_path,
            data_written=_written_at(data_path),
            metadata_written=_written_at(metadata_path),
        )

    def is_stale(self, study: Study) -> bool:
        """Return ``True`` unless both artifacts postdate ``study.timestamp``."""
        return not self.entry(study).is_fresh_for(study)

    # ------------------------------------------------------------------ #
    # Atomic writes                                                      #
    # ------------------------------------------------------------------ #
    def _write_atomic(self, dest: Path, write: Callable[[Path], None]) -> Path:
        """Run *write* against a temporary sibling of *dest*, then move it in place."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(dest.name + PART_SUFFIX)
        try:
            write(tmp)
            tmp.replace(dest)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        log.debug("Wrote artifact", path=str(dest))
        return dest

    def write_data_atomic(self, study: Study, chunks: Iterable[bytes]) -> Path:
        """Persist the tabular export of *study* from an iterable of byte chunks.

        Exceptions raised while consuming *chunks* (e.g. a broken download)
        propagate after the temporary file has been removed.
        """

        def _write(tmp: Path) -> None:
            with tmp.open("wb") as fh:
                for chunk in chunks:
                    fh.write(chunk)

        return self._write_atomic(self.data_path(study), _write)

    def write_metadata_atomic(self, study: Study, document: str) -> Path:
        """Persist the serialized metadata *document* of *study*."""
        return self._write_atomic(
            self.metadata_path(study),
            lambda tmp: tmp.write_text(document, encoding="utf-8"),
        )
