import pytest
from click.testing import CliRunner

import studymatic.cli as cli_mod
from catalog_fakes import FakeCatalogClient, make_study
from studymatic.config_loader import ENV_MAP
from studymatic.context import SyncContext
from studymatic.errors import AuthError
from studymatic.mirror.store import LocalMirrorStore


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    for env in list(ENV_MAP.values()) + ['STUDYMATIC_CONFIG']:
        monkeypatch.delenv(env, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli_mod, 'setup_logging', lambda **kw: None)


@pytest.fixture
def fake_catalog(monkeypatch, sleeps):
    """Route the CLI to an in-memory catalog and capture the settings used."""
    client = FakeCatalogClient([make_study('NSD0001'), make_study('NSD0002')])
    seen = {}

    def fake_build(settings):
        seen['settings'] = settings
        return SyncContext(
            client=client,
            store=LocalMirrorStore(settings.output_dir),
            backoff_seconds=settings.backoff_seconds,
            sleep=sleeps.append,
        )

    monkeypatch.setattr(cli_mod, 'build_context', fake_build)
    client.seen = seen
    return client


def test_sync_without_server_fails():
    result = CliRunner().invoke(cli_mod.cli, ['sync'])
    assert result.exit_code == 1
    assert 'No catalog server configured' in result.output


def test_sync_mirrors_catalog(fake_catalog, tmp_path):
    result = CliRunner().invoke(cli_mod.cli, ['--server', 'https://x', '-o', str(tmp_path / 'out'), 'sync'])

    assert result.exit_code == 0, result.output
    assert '2 studies: 2 mirrored, 0 skipped, 0 failed' in result.output
    assert (tmp_path / 'out' / 'NSD0001-data.csv.zip').exists()
    assert (tmp_path / 'out' / 'NSD0002-meta.json').exists()


def test_partial_failure_still_exits_zero(fake_catalog, sleeps):
    fake_catalog.failing_data.add('NSD0001')

    result = CliRunner().invoke(cli_mod.cli, ['--server', 'https://x', 'sync', '--backoff', '0.5'])

    assert result.exit_code == 0, result.output
    assert '1 failed' in result.output
    assert sleeps == [0.5]


def test_sync_single_study(fake_catalog):
    result = CliRunner().invoke(cli_mod.cli, ['--server', 'https://x', 'sync', '--study', 'NSD0002'])

    assert result.exit_code == 0, result.output
    assert fake_catalog.fetches == [('data', 'NSD0002'), ('variables', 'NSD0002')]
    assert fake_catalog.seen['settings'].study == 'NSD0002'


def test_sync_unknown_study(fake_catalog):
    result = CliRunner().invoke(cli_mod.cli, ['--server', 'https://x', 'sync', '-s', 'missing'])
    assert result.exit_code == 1
    assert "'missing' not found" in result.output


def test_catalog_unavailable_exits_nonzero(fake_catalog):
    fake_catalog.unavailable = True
    result = CliRunner().invoke(cli_mod.cli, ['--server', 'https://x', 'sync'])
    assert result.exit_code == 1
    assert 'HTTP 503' in result.output


def test_negative_backoff_rejected(fake_catalog):
    result = CliRunner().invoke(cli_mod.cli, ['--server', 'https://x', 'sync', '--backoff', '-1'])
    assert result.exit_code == 2


def test_auth_error_is_fatal(monkeypatch):
    def refuse(settings):
        raise AuthError("Credentials for 'alice' were rejected (HTTP 401)")

    monkeypatch.setattr(cli_mod, 'build_context', refuse)
    result = CliRunner().invoke(cli_mod.cli, ['--server', 'https://x', '-u', 'alice', '-p', 'pw', 'sync'])

    assert result.exit_code == 1
    assert 'rejected' in result.output


def test_options_reach_settings(fake_catalog, tmp_path):
    cfg = tmp_path / 'cfg.yaml'
    cfg.write_text("server: https://file.example\nbackoff_seconds: 4\n")

    result = CliRunner().invoke(cli_mod.cli, ['-c', str(cfg), '--timeout', '9', 'sync'])

    assert result.exit_code == 0, result.output
    settings = fake_catalog.seen['settings']
    assert settings.server == 'https://file.example'
    assert settings.timeout == 9.0
    assert settings.backoff_seconds == 4.0


def test_status_reports_staleness(fake_catalog, tmp_path):
    runner = CliRunner()
    out_dir = str(tmp_path / 'out')
    runner.invoke(cli_mod.cli, ['--server', 'https://x', '-o', out_dir, 'sync', '-s', 'NSD0001'])
    fake_catalog.calls.clear()

    result = runner.invoke(cli_mod.cli, ['--server', 'https://x', '-o', out_dir, 'status'])

    assert result.exit_code == 0, result.output
    assert '2 studies, 1 stale' in result.output
    assert fake_catalog.fetches == []
