"""
Presentation helpers for CLI commands.

The functions here format and print sync summaries and freshness tables.
Pure string/console logic lives here so the engine stays focused on
orchestration rather than I/O.
"""

from __future__ import annotations

import sys
from typing import Dict, List, Sequence, Tuple

import click
import tableprint as tp

from studymatic.models import MirrorEntry, Study, SyncReport
from studymatic.mirror.serializer import format_timestamp

_CAPS = {"ID": 24, "Label": 40, "Error": 48}


def truncate_rows(
    rows: List[List[str]],
    headers: List[str],
    caps: Dict[str, int],
) -> List[List[str]]:
    """Return a copy of *rows* with overly long cells truncated.

    Args:
        rows:     2-D list of text cells.
        headers:  Header names aligned with row indices.
        caps:     Per-header maximum length.
    """
    out: List[List[str]] = []
    for row in rows:
        new_row = []
        for i, cell in enumerate(row):
            limit = caps.get(headers[i])
            if limit and len(cell) > limit:
                new_row.append(cell[: limit - 1] + "…")
            else:
                new_row.append(cell)
        out.append(new_row)
    return out


def _print_table(rows: List[List[str]], headers: List[str]) -> None:
    rows = truncate_rows(rows, headers, _CAPS)
    widths = [
        max([len(h)] + [len(r[i]) for r in rows]) for i, h in enumerate(headers)
    ]
    tp.table(rows, headers=headers, width=widths, align="left", out=sys.stdout)


def summarize_sync(report: SyncReport) -> None:
    """Print one row per study of *report* followed by a count line."""
    if not report.outcomes:
        click.echo("\n[INFO] Catalog is empty; nothing to sync.\n")
        return

    rows = [
        [o.study_id, o.label or "", o.state.value, o.error or ""]
        for o in report.outcomes
    ]
    _print_table(rows, ["ID", "Label", "State", "Error"])

    counts = report.summary()
    click.echo(
        f"{counts['total']} studies: {counts['mirrored']} mirrored, "
        f"{counts['skipped']} skipped, {counts['failed']} failed"
    )


def display_status(entries: Sequence[Tuple[Study, MirrorEntry]]) -> None:
    """Print the freshness of each ``(study, entry)`` pair."""
    if not entries:
        click.echo("\n[INFO] Catalog is empty.\n")
        return

    rows = [
        [
            study.id,
            study.label or "",
            format_timestamp(study.timestamp),
            "fresh" if entry.is_fresh_for(study) else "stale",
        ]
        for study, entry in entries
    ]
    _print_table(rows, ["ID", "Label", "Remote timestamp", "Mirror"])

    stale = sum(1 for row in rows if row[3] == "stale")
    click.echo(f"{len(rows)} studies, {stale} stale")
