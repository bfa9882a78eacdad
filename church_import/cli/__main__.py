from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from church_import.config.loader import ConfigError, load_config
from church_import.db.store import PostgresTenantStore
from church_import.logging.error_log import ErrorLogBuffer
from church_import.logging.init import log_summary, setup_logging
from church_import.models.config_models import DatabaseConfig
from church_import.models.import_result import ImportFailure
from church_import.services.households import HeadOfHouseholdPolicy
from church_import.services.orchestrator import (
    KINDS,
    run_giving_import,
    run_member_import,
    summarize_errors,
)
from church_import.services.summary import render_summary_line

"""CLI entrypoint.

    python -m church_import.cli {giving,members} FILE --church-id ID
        [--config PATH] [--policy sequence|heuristic] [--dry-run] [--debug] [--json]

Exit codes: 0 every data row succeeded, 2 at least one row failed, 1 fatal
(bad config, unreadable file, structural CSV problem, database unreachable).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build the connection string.

    Resolution order:
        1. DATABASE_URL / PGDSN (after .env has been loaded)
        2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. the config `database` section for whatever is still missing
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection + cursor with explicit transaction boundaries.

    The committer issues BEGIN/COMMIT/ROLLBACK itself, so autocommit stays off
    and nothing is committed here.
    """
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    try:
        conn.autocommit = False
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values win over variables already in the environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="church-import", description="Bulk CSV giving / membership importer"
    )
    p.add_argument("kind", choices=KINDS, help="What the CSV contains")
    p.add_argument("file", type=Path, help="CSV file to import")
    p.add_argument("--church-id", required=True, help="Tenant the rows belong to")
    p.add_argument("--config", type=Path, default=None, help="YAML config (default: bundled defaults)")
    p.add_argument(
        "--policy",
        choices=[policy.value for policy in HeadOfHouseholdPolicy],
        default=None,
        help="Head-of-household policy for envelope giving (overrides config)",
    )
    p.add_argument("--dry-run", action="store_true", help="Validate and count without writing")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--json", action="store_true", help="Print the response payload as JSON")
    return p.parse_args(argv)


def _run(args: argparse.Namespace, cursor: Any, cfg: Any, text: str, error_log: ErrorLogBuffer) -> Any:
    store = PostgresTenantStore(cursor, args.church_id)
    if args.kind == "giving":
        return run_giving_import(
            text,
            store,
            cfg,
            file_name=args.file.name,
            policy=args.policy,
            dry_run=args.dry_run,
            error_log=error_log,
        )
    return run_member_import(
        text, store, cfg, file_name=args.file.name, dry_run=args.dry_run, error_log=error_log
    )


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] from tests must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        text = args.file.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"cannot read {args.file}: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer()
    try:
        with _db_connection(cfg.database) as cur:
            result = _run(args, cur, cfg, text, error_log)
    except ImportFailure as e:
        logger.error(f"import: {e.message}")
        if args.json:
            print(json.dumps(e.to_payload()))
        _flush_error_log(error_log, logger)
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    for message in summarize_errors(result.errors):
        logger.warning(message)
    log_path = _flush_error_log(error_log, logger)
    if log_path is not None:
        logger.info(f"error details written to {log_path}")
    if args.dry_run:
        logger.info("dry run: nothing was written")

    if args.json:
        print(json.dumps(result.to_payload()))

    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(result).removeprefix("SUMMARY "))

    if result.failed > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _flush_error_log(error_log: ErrorLogBuffer, logger: Any) -> Path | None:
    try:
        return error_log.flush()
    except OSError as e:
        logger.warning(f"could not write error log: {e}")
        return None


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
