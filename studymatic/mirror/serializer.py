"""Canonical metadata documents for mirrored studies.

The document shape is uniform across studies: every key is always present,
missing labels are written as ``null`` and empty category lists as ``[]``::

    {
      "id": "NSD1234",
      "label": "European Social Survey 2018",
      "timestamp": "2019-03-01T12:00:00.000+00:00",
      "variables": {
        "V1": {"id": "V1", "label": "Gender", "name": "gndr",
               "categories": [{"id": "C1", "label": "Male", "value": "1"}]}
      }
    }
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Dict

from pydantic import ValidationError

from studymatic.errors import SerializationError
from studymatic.models import MirrorDocument, Study, Variable


def format_timestamp(ts: datetime) -> str:
    """Render *ts* in UTC with millisecond precision and an explicit offset."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds")


class MetadataSerializer:
    """Build, encode and decode :class:`MirrorDocument` objects."""

    def __init__(self, *, indent: int | None = 2) -> None:
        self.indent = indent

    def build(self, study: Study) -> MirrorDocument:
        """Return the document for *study* (which must carry its variables).

        Raises:
            SerializationError: If two variables share an identifier.
        """
        variables: Dict[str, Variable] = {}
        for var in study.variables:
            if var.id in variables:
                raise SerializationError(
                    f"Study {study.id} has more than one variable with id {var.id!r}"
                )
            variables[var.id] = var

        return MirrorDocument(
            id=study.id,
            label=study.label,
            timestamp=format_timestamp(study.timestamp),
            variables=variables,
        )

    def dumps(self, document: MirrorDocument) -> str:
        """Encode *document* as JSON text."""
        try:
            return json.dumps(
                document.model_dump(mode="json"),
                indent=self.indent,
                ensure_ascii=False,
            )
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Could not encode metadata for {document.id}: {exc}") from exc

    def serialize(self, study: Study) -> str:
        """Shortcut for ``dumps(build(study))``."""
        return self.dumps(self.build(study))

    @staticmethod
    def parse(text: str) -> MirrorDocument:
        """Decode a previously written document.

        Raises:
            SerializationError: If *text* is not a valid document.
        """
        try:
            return MirrorDocument.model_validate_json(text)
        except ValidationError as exc:
            raise SerializationError(f"Invalid metadata document: {exc}") from exc
