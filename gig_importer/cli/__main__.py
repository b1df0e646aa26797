from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from gig_importer.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from gig_importer.db.memory_store import InMemoryStore
from gig_importer.db.pg_store import PostgresStore
from gig_importer.db.store import RecordStore, StoreError
from gig_importer.logging.init import log_summary, set_debug, setup_logging
from gig_importer.models.config_models import ImportConfig
from gig_importer.services.orchestrator import (
    ProcessingError,
    get_last_import_batch,
    prepare_plan,
    run_import,
    undo_import,
)
from gig_importer.services.summary import render_summary_line, render_undo_line
from gig_importer.tabular.reader import ReaderError

"""CLI entrypoint.

Flow:
- Load ``.env`` (override) and the YAML config
- Connect to PostgreSQL, or fall back to the in-memory store (mock mode)
- Import the configured file, or inspect / undo depending on flags
- Emit one SUMMARY line and map the outcome to an exit code
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _resolve_dsn(cfg: ImportConfig) -> str:
    """接続情報の優先順位: DATABASE_URL / PGDSN > PG* 環境変数 > config の database セクション."""
    db_cfg = cfg.database
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
def _open_store(cfg: ImportConfig, logger) -> Iterator[RecordStore]:  # pragma: no cover (tested via integration)
    """Yield a PostgresStore, or an InMemoryStore in mock mode.

    The connection runs in autocommit mode: each store call is its own
    statement, so rows stay persisted when a later row fails and undo removes
    them by batch id.
    """
    # DB 接続制御: テスト等で完全に無効化したい場合 DISABLE_DB_CONNECT=1
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield InMemoryStore()
        return
    try:
        conn = psycopg2.connect(_resolve_dsn(cfg))
    except psycopg2.Error as db_e:
        logger.warning(f"DB connection failed -> fallback to mock mode: {db_e}")
        yield InMemoryStore()
        return
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            logger.debug("mode=live")
            yield PostgresStore(cur)
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、PostgreSQL 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="gig-import", description="Gig CSV / XLSX importer")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to the YAML config")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect-data",
        action="store_true",
        help="Print detected mapping, payer matches, duplicates and preview totals then exit",
    )
    undo = p.add_mutually_exclusive_group()
    undo.add_argument("--undo", metavar="BATCH_ID", help="Undo the given import batch")
    undo.add_argument("--undo-last", action="store_true", help="Undo the most recent import batch")
    return p.parse_args(argv)


def _inspect_data(cfg: ImportConfig, store: RecordStore) -> int:
    try:
        plan = prepare_plan(cfg, store)
    except (ReaderError, ProcessingError, StoreError) as e:
        print(f"inspect: {e}")
        return EXIT_FATAL

    print(f"FILE: {cfg.input_file}")
    print(f"  mapping={plan.mapping.as_dict()}")
    for m in plan.payer_matches:
        target = f" -> {m.existing_payer_name}" if m.existing_payer_name else ""
        print(f"  PAYER: {m.source_name!r} {m.confidence.value}/{m.action.value}{target}")
    for d in plan.duplicates:
        print(f"  DUPLICATE: rows={list(d.import_rows)} {d.confidence.value} key={d.key}")
    for row in plan.normalized:
        for err in row.errors:
            print(f"  ROW {row.row_index} error: {err}")
        for warn in row.warnings:
            print(f"  ROW {row.row_index} warning: {warn}")
    pv = plan.preview
    print(
        f"  PREVIEW rows={pv.total_rows} valid={pv.valid_rows} errors={pv.error_rows} "
        f"gross={pv.total_gross:.2f} tips={pv.total_tips:.2f} fees={pv.total_fees:.2f} "
        f"combined_rows={len(plan.rows)}"
    )
    return EXIT_SUCCESS_ALL


def _undo(args: argparse.Namespace, cfg: ImportConfig, store: RecordStore, logger) -> int:
    batch_id = args.undo
    if args.undo_last:
        try:
            last = get_last_import_batch(store, cfg.user_id)
        except StoreError as e:
            logger.error(f"undo: {e}")
            return EXIT_FATAL
        if last is None:
            logger.info("no import batch to undo")
            return EXIT_SUCCESS_ALL
        batch_id = last.id
    try:
        result = undo_import(store, batch_id, cfg.user_id)
    except ProcessingError as e:
        logger.error(f"undo: {e}")
        return EXIT_FATAL
    log_summary(render_undo_line(result)[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # 空リスト [] はそのまま使う (None のときのみ sys.argv を読む)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    with _open_store(cfg, logger) as store:
        if args.inspect_data:
            return _inspect_data(cfg, store)
        if args.undo or args.undo_last:
            return _undo(args, cfg, store, logger)

        logger.info(f"Importing gigs from: {cfg.input_file}")
        try:
            result = run_import(cfg, store)
        except ReaderError as e:
            logger.error(f"read: {e}")
            return EXIT_FATAL
        except (ProcessingError, StoreError) as e:
            logger.error(f"processing: {e}")
            return EXIT_FATAL

    for failed in result.errors:
        logger.warning(f"row {failed.row_index}: {failed.error}")

    # log_summary が "SUMMARY " を付与するので除去して渡す
    log_summary(render_summary_line(result)[len("SUMMARY "):])

    if result.summary.error_count > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
