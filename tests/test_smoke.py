import logging
import os
import pytest
from unittest.mock import patch
from typer.testing import CliRunner
from memweave.config import Settings
from memweave.cli import app
from memweave.logging import SweepIDFilter, get_sweep_id, new_sweep_id, sweep_id_ctx

runner = CliRunner()

def test_settings_defaults():
    """Defaults hold when nothing is set in the environment."""
    settings = Settings()
    assert settings.EMBEDDING_DIM == 384
    assert settings.SWEEP_SAME_TYPE_THRESHOLD == 0.85
    assert settings.SWEEP_CROSS_TYPE_THRESHOLD == 0.75
    assert settings.EVENT_CROSS_TYPE_THRESHOLD == 0.55
    assert settings.PATTERN_MEMORY_THRESHOLD == 0.80

def test_settings_env_override():
    os.environ["MEMWEAVE_EMBEDDING_DIM"] = "128"
    try:
        assert Settings().EMBEDDING_DIM == 128
    finally:
        del os.environ["MEMWEAVE_EMBEDDING_DIM"]


def test_sweep_id_placeholder_outside_a_sweep():
    token = sweep_id_ctx.set(None)
    try:
        assert get_sweep_id() == "-"
        assert sweep_id_ctx.get() is None
        sid = new_sweep_id()
        assert get_sweep_id() == sid
        record = logging.LogRecord("memweave", logging.INFO, __file__, 1, "msg", None, None)
        assert SweepIDFilter().filter(record)
        assert record.sweep_id == sid
    finally:
        sweep_id_ctx.reset(token)


@pytest.fixture(name="cli_settings")
def cli_settings_fixture(tmp_path):
    settings = Settings(DB_URL=f"sqlite:///{tmp_path / 'data' / 'intelligence.db'}")
    with patch("memweave.cli.settings", settings):
        yield settings

def test_cli_doctor(cli_settings):
    result = runner.invoke(app, ["doctor"])
    assert result.exit_code == 0
    assert "memweave Doctor" in result.stdout
    assert "Sweep ID: " in result.stdout
    assert "run `memweave db init`" in result.stdout

def test_cli_consolidate_without_db_fails(cli_settings):
    result = runner.invoke(app, ["consolidate"])
    assert result.exit_code == 1
    assert "Store unavailable" in result.stdout

def test_cli_init_then_consolidate(cli_settings):
    assert runner.invoke(app, ["db", "init"]).exit_code == 0
    assert runner.invoke(app, ["db", "validate"]).exit_code == 0

    result = runner.invoke(app, ["consolidate"])
    assert result.exit_code == 0
    assert "Consolidation complete" in result.stdout

    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "consolidation_count" in result.stdout

def test_cli_events(cli_settings):
    runner.invoke(app, ["db", "init"])
    result = runner.invoke(app, ["event", "session-start", "--agent", "coder", "--session", "s-1"])
    assert result.exit_code == 0
    assert "agents=1" in result.stdout

    result = runner.invoke(app, ["event", "edit", "--file", "src/app.ts"])
    assert result.exit_code == 0

    result = runner.invoke(app, ["compress"])
    assert result.exit_code == 0
    assert "Dream cycle complete" in result.stdout

    result = runner.invoke(app, ["embeddings", "migrate", "--dry-run"])
    assert result.exit_code == 0
    assert "would migrate 0" in result.stdout
