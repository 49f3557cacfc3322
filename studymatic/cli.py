"""\b
Command-line interface entry point for *studymatic*.

The module configures global options, loads the merged configuration, sets up
logging and registers the sub-commands:

* ``sync``   – mirror the whole catalog, or one study with ``--study``;
* ``status`` – compare the catalog with the local mirror without fetching.

Fatal conditions (missing server, rejected credentials, unreachable catalog,
unknown study) end the process with exit status 1.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
import structlog

from studymatic import __version__
from studymatic.config_loader import Settings, load_settings
from studymatic.context import build_context
from studymatic.errors import (
    AuthError,
    CatalogUnavailable,
    ConfigurationError,
    NotFound,
)
from studymatic.mirror.engine import SyncEngine
from studymatic.utils.display import display_status, summarize_sync
from studymatic.utils.logging import setup_logging

log = structlog.get_logger()

_FATAL = (ConfigurationError, AuthError, CatalogUnavailable, NotFound)


def _common_options(func):
    """Attach global CLI flags shared by every sub-command."""
    shared = [
        click.option(
            "-c",
            "--config",
            "config_path",
            type=click.Path(dir_okay=False, path_type=Path),
            help="Path to YAML configuration file.",
        ),
        click.option("--server", help="Catalog API root URL (overrides configuration or $STUDYMATIC_SERVER)."),
        click.option("-u", "--username", help="Catalog username (overrides configuration or $STUDYMATIC_USERNAME)."),
        click.option("-p", "--password", help="Catalog password (overrides configuration or $STUDYMATIC_PASSWORD)."),
        click.option(
            "-o",
            "--output-dir",
            "output_dir",
            type=click.Path(file_okay=False, path_type=Path),
            help="Mirror root directory (default: data).",
        ),
        click.option("--timeout", type=float, metavar="SEC", help="HTTP request timeout in seconds."),
        click.option("-v", "--verbose", is_flag=True, help="Human-readable console logs."),
        click.option("--debug", is_flag=True, help="DEBUG-level logs with tracebacks."),
        click.option(
            "--save-logfile",
            type=click.Path(dir_okay=False, path_type=Path),
            help="Mirror console output into this plain-text file.",
        ),
    ]
    for opt in reversed(shared):
        func = opt(func)
    return func


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__)
@_common_options
@click.pass_context
def cli(  # noqa: D401 – Click callback
    ctx: click.Context,
    config_path: Optional[Path],
    server: Optional[str],
    username: Optional[str],
    password: Optional[str],
    output_dir: Optional[Path],
    timeout: Optional[float],
    verbose: bool,
    debug: bool,
    save_logfile: Optional[Path],
) -> None:
    """studymatic-cli – mirror a remote survey catalog to local storage."""
    try:
        settings = load_settings(
            config_path,
            overrides={
                "server": server,
                "username": username,
                "password": password,
                "output_dir": output_dir,
                "timeout": timeout,
            },
        )
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    setup_logging(
        verbose=verbose,
        debug=debug,
        log_dir=Path(settings.output_dir) / ".logs",
        extra_text_log=save_logfile,
    )
    ctx.obj = settings


def _engine_for(settings: Settings) -> SyncEngine:
    """Authenticate and build the engine, converting fatal errors for Click."""
    try:
        return SyncEngine(build_context(settings))
    except (ConfigurationError, AuthError) as exc:
        log.error("Cannot start sync", error=str(exc))
        raise click.ClickException(str(exc)) from exc


@cli.command("sync")
@click.option("-s", "--study", help="Sync only this study id (always re-fetched).")
@click.option("--backoff", type=float, metavar="SEC", help="Pause after a failed study (default: 10).")
@click.pass_obj
def sync(settings: Settings, study: Optional[str], backoff: Optional[float]) -> None:
    """Mirror every stale study, or a single study when --study is given."""
    if study:
        settings = settings.model_copy(update={"study": study})
    if backoff is not None:
        if backoff < 0:
            raise click.BadParameter("must be >= 0", param_hint="--backoff")
        settings = settings.model_copy(update={"backoff_seconds": backoff})

    engine = _engine_for(settings)
    try:
        if settings.study:
            report = engine.sync_one(settings.study)
        else:
            report = engine.sync_all()
    except _FATAL as exc:
        log.error("Sync aborted", error=str(exc))
        raise click.ClickException(str(exc)) from exc

    summarize_sync(report)


@cli.command("status")
@click.pass_obj
def status(settings: Settings) -> None:
    """Show which catalog studies are fresh or stale locally."""
    engine = _engine_for(settings)
    try:
        studies = engine.client.list_studies()
    except CatalogUnavailable as exc:
        log.error("Cannot list studies", error=str(exc))
        raise click.ClickException(str(exc)) from exc

    display_status([(s, engine.store.entry(s)) for s in studies])


if __name__ == "__main__":
    cli()
