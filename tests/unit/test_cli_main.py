from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import psycopg2
import pytest

from gig_importer.cli import main as cli_main
from gig_importer.cli.__main__ import _parse_args, _resolve_dsn
from gig_importer.models.config_models import DatabaseConfig, ImportConfig


def _cfg(**db) -> ImportConfig:
    return ImportConfig(input_file="x.csv", user_id="u", database=DatabaseConfig(**db))


@pytest.fixture()
def no_pg_env(monkeypatch):
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)


def test_parse_args_defaults():
    args = _parse_args([])
    assert args.config == Path("config/import.yml")
    assert args.debug is False
    assert args.inspect_data is False
    assert args.undo is None
    assert args.undo_last is False


def test_parse_args_undo_flags_exclusive():
    with pytest.raises(SystemExit):
        _parse_args(["--undo", "b1", "--undo-last"])


def test_resolve_dsn_env_url_wins(monkeypatch, no_pg_env):
    monkeypatch.setenv("DATABASE_URL", "postgresql://env/db")
    assert _resolve_dsn(_cfg(dsn="postgresql://cfg/db")) == "postgresql://env/db"


def test_resolve_dsn_from_config_parts(no_pg_env):
    dsn = _resolve_dsn(_cfg(host="db", port=6543, user="app", password="pw", database="gigs"))
    assert dsn == "host=db port=6543 user=app dbname=gigs password=pw"


def test_resolve_dsn_pg_vars_override_config(monkeypatch, no_pg_env):
    monkeypatch.setenv("PGHOST", "envhost")
    dsn = _resolve_dsn(_cfg(host="db", database="gigs"))
    assert dsn == "host=envhost port=5432 user=postgres dbname=gigs"


def test_main_mock_mode_import(write_config, sample_csv, clean_logging, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO Importing gigs from: ./data/gigs.csv" in out
    assert "SUMMARY batch=" in out
    assert "rows=3 imported=3 skipped=0 errors=0 new_payers=2" in out


def test_main_custom_config_path(temp_workdir, sample_config_yaml, sample_csv, clean_logging, capsys):
    custom = temp_workdir / "other.yml"
    custom.write_text(sample_config_yaml, encoding="utf-8")
    assert cli_main(["--config", str(custom)]) == 0


def test_main_debug_flag(write_config, sample_csv, clean_logging, capsys):
    code = cli_main(["--debug"])
    out = capsys.readouterr().out
    assert code == 0
    assert "DEBUG debug mode enabled" in out
    assert "DEBUG DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode" in out


def test_main_inspect_data(write_config, sample_csv, clean_logging, capsys):
    code = cli_main(["--inspect-data"])
    out = capsys.readouterr().out
    assert code == 0
    assert "FILE: ./data/gigs.csv" in out
    assert "'payment_method': 'Payment Method'" in out
    assert "PAYER: 'Blue Note' none/create_new" in out
    assert "PREVIEW rows=3 valid=3 errors=0 gross=2350.00" in out
    assert "SUMMARY" not in out
    # inspect は何も書き込まない
    assert not list(Path("logs").iterdir())


def test_main_inspect_data_read_error(write_config, clean_logging, capsys):
    code = cli_main(["--inspect-data"])
    assert code == 1
    assert "inspect: input file not found" in capsys.readouterr().out


def test_main_undo_in_mock_mode(write_config, clean_logging, capsys):
    code = cli_main(["--undo", "b-123"])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY undo batch=b-123 deleted_gigs=0 deleted_payers=0" in out


def test_main_undo_last_without_batches(write_config, clean_logging, capsys):
    code = cli_main(["--undo-last"])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO no import batch to undo" in out


def test_main_db_connect_failure_falls_back(monkeypatch, write_config, sample_csv, clean_logging, capsys):
    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    with patch("gig_importer.cli.__main__.psycopg2.connect", side_effect=psycopg2.OperationalError("refused")):
        code = cli_main([])
    out = capsys.readouterr().out
    assert code == 0
    assert "WARN DB connection failed -> fallback to mock mode: refused" in out
    assert "SUMMARY batch=" in out


def test_main_live_mode_uses_postgres_store(monkeypatch, write_config, sample_csv, clean_logging, capsys):
    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    with patch("gig_importer.cli.__main__.psycopg2.connect") as mock_connect, \
         patch("gig_importer.cli.__main__.PostgresStore") as mock_store_cls, \
         patch("gig_importer.cli.__main__.run_import", side_effect=RuntimeError("stop")) as mock_run:
        with pytest.raises(RuntimeError, match="stop"):
            cli_main([])

    conn = mock_connect.return_value
    assert conn.autocommit is True
    conn.close.assert_called_once()
    store = mock_store_cls.return_value
    assert mock_run.call_args.args[1] is store


def test_main_env_file_loaded(monkeypatch, temp_workdir, write_config, sample_csv, clean_logging, capsys):
    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    (temp_workdir / ".env").write_text("DISABLE_DB_CONNECT=1\n", encoding="utf-8")
    with patch("gig_importer.cli.__main__.psycopg2.connect") as mock_connect:
        code = cli_main([])
    assert code == 0
    mock_connect.assert_not_called()
