from __future__ import annotations

import json
import os
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import patch

import psycopg2
import pytest

import church_import.cli.__main__ as cli
from church_import.cli.__main__ import main as cli_main

"""End-to-end CLI runs with the database replaced by an in-memory store."""


@pytest.fixture()
def fake_db(giving_store):
    """Route the CLI's connection + store construction to ``giving_store``."""
    opened = []

    @contextmanager
    def fake_connection(db_cfg):
        opened.append(db_cfg)
        yield object()

    def fake_store(cursor, church_id):
        giving_store.church_id = church_id
        return giving_store

    with patch.object(cli, "_db_connection", fake_connection), patch.object(
        cli, "PostgresTenantStore", side_effect=fake_store
    ):
        yield giving_store, opened


def _write(temp_workdir: Path, name: str, text: str) -> Path:
    path = temp_workdir / "data" / name
    path.write_text(text, encoding="utf-8")
    return path


def test_all_rows_succeed_exit_0(temp_workdir, fake_db, capsys):
    store, opened = fake_db
    csv = _write(temp_workdir, "jan.csv", "Envelope Number,Current,Mission,Date Given\n12,50.00,0,2024-01-15\n")
    code = cli_main(["giving", str(csv), "--church-id", "church-9"])
    out = capsys.readouterr().out
    assert code == cli.EXIT_SUCCESS_ALL
    assert len(opened) == 1
    assert store.church_id == "church-9"
    assert len(store.giving) == 1
    assert "SUMMARY kind=giving rows=1 success=1 failed=0" in out
    assert not (temp_workdir / "logs").exists()


def test_partial_failure_exit_2_and_error_log(temp_workdir, fake_db, capsys):
    store, _ = fake_db
    csv = _write(
        temp_workdir,
        "feb.csv",
        "Envelope Number,Current,Date Given\n12,5,2024-02-01\n12,-5,2024-02-01\n",
    )
    code = cli_main(["giving", str(csv), "--church-id", "church-1", "--json"])
    out = capsys.readouterr().out
    assert code == cli.EXIT_PARTIAL_FAILURE
    assert "WARN Row 3: Invalid amount for Current (must be non-negative)" in out
    payload = json.loads(next(line for line in out.splitlines() if line.startswith("{")))
    assert payload == {
        "success": 1,
        "failed": 1,
        "errors": ["Row 3: Invalid amount for Current (must be non-negative)"],
    }
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    record = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert (record["file"], record["row"], record["error_type"]) == ("feb.csv", 3, "INVALID_AMOUNT")


def test_policy_flag_and_dry_run(temp_workdir, fake_db, capsys):
    store, _ = fake_db
    csv = _write(temp_workdir, "mar.csv", "Envelope Number,Current,Date Given\n12,5,2024-03-01\n")
    code = cli_main(["giving", str(csv), "--church-id", "church-1", "--policy", "heuristic", "--dry-run"])
    out = capsys.readouterr().out
    assert code == 0
    assert store.giving == []
    assert "INFO dry run: nothing was written" in out


def test_structural_failure_exit_1(temp_workdir, fake_db, capsys):
    csv = _write(temp_workdir, "empty.csv", "Envelope Number,Current,Date Given\n")
    code = cli_main(["giving", str(csv), "--church-id", "church-1", "--json"])
    out = capsys.readouterr().out
    assert code == cli.EXIT_FATAL
    assert "ERROR import: CSV file must have at least a header row and one data row" in out
    assert '{"error": "CSV file must have at least a header row and one data row"}' in out


def test_missing_file_exit_1(temp_workdir, fake_db, capsys):
    code = cli_main(["giving", str(temp_workdir / "nope.csv"), "--church-id", "church-1"])
    assert code == cli.EXIT_FATAL
    assert "ERROR cannot read" in capsys.readouterr().out


def test_bad_config_exit_1(temp_workdir, fake_db, capsys):
    cfg = temp_workdir / "config" / "broken.yml"
    cfg.write_text("version: one\n", encoding="utf-8")
    csv = _write(temp_workdir, "x.csv", "a\nb\n")
    code = cli_main(["giving", str(csv), "--church-id", "c", "--config", str(cfg)])
    assert code == cli.EXIT_FATAL
    assert "ERROR config:" in capsys.readouterr().out


def test_database_unreachable_exit_1(temp_workdir, capsys):
    csv = _write(temp_workdir, "x.csv", "Envelope Number,Current,Date Given\n12,5,2024-01-15\n")

    def refuse(dsn):
        raise psycopg2.OperationalError("connection refused")

    with patch.object(cli.psycopg2, "connect", side_effect=refuse):
        code = cli_main(["giving", str(csv), "--church-id", "c"])
    assert code == cli.EXIT_FATAL
    assert "ERROR database: connection refused" in capsys.readouterr().out


def test_debug_flag(temp_workdir, fake_db, capsys):
    csv = _write(temp_workdir, "d.csv", "Envelope Number,Current,Date Given\n12,5,2024-01-15\n")
    cli_main(["giving", str(csv), "--church-id", "c", "--debug"])
    out = capsys.readouterr().out
    assert "DEBUG debug mode enabled" in out
    assert "DEBUG giving import d.csv: parsing_header -> validating" in out


def test_resolve_dsn_precedence(monkeypatch, write_config):
    from church_import.config.loader import load_config

    db_cfg = load_config(write_config).database
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    assert cli.resolve_dsn(db_cfg) == "host=dbhost port=5433 user=importer dbname=church password=secret"
    monkeypatch.setenv("PGHOST", "envhost")
    assert cli.resolve_dsn(db_cfg).startswith("host=envhost port=5433")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u@h/db")
    assert cli.resolve_dsn(db_cfg) == "postgresql://u@h/db"


def test_env_file_is_loaded(temp_workdir, monkeypatch):
    monkeypatch.delenv("PGDATABASE", raising=False)
    (temp_workdir / ".env").write_text("PGDATABASE=from_env_file\n", encoding="utf-8")
    cli._load_env_file(temp_workdir / ".env")
    assert os.environ["PGDATABASE"] == "from_env_file"
