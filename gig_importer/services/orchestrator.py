from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from ..db.store import RecordStore, StoreError
from ..logging.error_log import BATCH_LEVEL_ROW, ErrorLogBuffer
from ..models.config_models import ImportConfig
from ..models.import_result import (
    ZERO,
    BatchImportResult,
    BatchState,
    GigRecord,
    ImportBatch,
    ImportOptions,
    ImportRowResult,
    ImportSummary,
    RowStatus,
    UndoResult,
)
from ..models.matching import DuplicateGroup, ExistingGig, ExistingPayer, PayerAction, PayerMatch
from ..models.rows import ColumnMapping, CombinedRow, NormalizedRow, RawRow
from ..tabular.reader import read_rows
from .combiner import combine_rows, drop_flagged_rows
from .duplicates import detect_duplicates, flagged_row_indices
from .normalizer import auto_detect_columns, normalize_rows
from .payer_matcher import get_unique_payers, match_payers
from .progress import ProgressTracker
from .summary import PreviewSummary, calculate_import_summary

logger = logging.getLogger(__name__)

"""Import orchestration: plan, commit and undo.

``plan_import`` is the pure pre-commit pipeline (normalize -> match payers ->
detect duplicates -> combine). ``commit_import`` walks the batch state machine
against a RecordStore:

    created -> payers_resolved -> rows_processed -> summarized
            -> (committed | rolled_back)

Only batch and payer creation are fail-fast. Once rows are being persisted
every failure stays local to its row.
"""

__all__ = [
    "ProcessingError",
    "ImportAbortedError",
    "UndoError",
    "ImportPlan",
    "plan_import",
    "commit_import",
    "undo_import",
    "get_last_import_batch",
    "resolve_mapping",
    "prepare_plan",
    "run_import",
]

NET_TOTAL_NOTE = "[Imported from Net Total column]"
COMBINED_NOTE_FMT = "[Combined from rows: {rows}]"


class ProcessingError(Exception):
    """Base exception for processing errors."""
    pass


class ImportAbortedError(ProcessingError):
    """Commit aborted before any row was persisted (batch shell removed)."""


class UndoError(ProcessingError):
    """Undo could not finish; the batch record is kept so undo can be retried."""


@dataclass(frozen=True)
class ImportPlan:
    mapping: ColumnMapping
    normalized: list[NormalizedRow]
    payer_matches: list[PayerMatch]
    duplicates: list[DuplicateGroup]
    rows: list[CombinedRow]
    preview: PreviewSummary


def plan_import(
    raw_rows: Sequence[RawRow],
    mapping: ColumnMapping,
    existing_payers: Sequence[ExistingPayer],
    existing_gigs: Sequence[ExistingGig],
    combine: bool = False,
    null_sentinels: set[str] | None = None,
) -> ImportPlan:
    """Run every side-effect free stage over the raw rows."""
    normalized = normalize_rows(raw_rows, mapping, null_sentinels=null_sentinels)
    matches = match_payers(get_unique_payers(normalized), existing_payers)
    duplicates = detect_duplicates(normalized, existing_gigs)
    combined = combine_rows(normalized, combine)
    return ImportPlan(
        mapping=mapping,
        normalized=normalized,
        payer_matches=matches,
        duplicates=duplicates,
        rows=combined,
        preview=calculate_import_summary(normalized),
    )


def _build_notes(row: CombinedRow) -> str | None:
    parts: list[str] = []
    if row.notes:
        parts.append(row.notes)
    if row.uses_net_total:
        parts.append(NET_TOTAL_NOTE)
    if row.is_combined:
        parts.append(COMBINED_NOTE_FMT.format(rows=", ".join(str(i) for i in row.combined_from_rows)))
    return "\n".join(parts) if parts else None


def _to_gig_record(row: CombinedRow, payer_id: str, batch_id: str) -> GigRecord:
    return GigRecord(
        payer_id=payer_id,
        date=row.date,
        gross_amount=row.amount,
        import_batch_id=batch_id,
        title=row.title or None,
        location=row.venue or None,
        city=row.city or None,
        state=row.state or None,
        tips=row.tips or ZERO,
        fees=row.fees or ZERO,
        per_diem=row.per_diem or ZERO,
        other_income=row.other_income or ZERO,
        taxes_withheld=row.taxes_withheld or ZERO,
        payment_method=row.payment_method or None,
        paid=bool(row.paid),
        notes=_build_notes(row),
    )


def _is_live_duplicate(store: RecordStore, user_id: str, row: CombinedRow, payer_id: str) -> bool:
    """Re-query the store for an already persisted copy of ``row``.

    Narrower than the detector: exact amount, same payer id and date. When the
    row has a title a stored gig only counts if its title is blank or equal.
    """
    hits = store.find_matching_gigs(user_id, payer_id, row.date, row.amount)
    if not hits:
        return False
    if row.title:
        wanted = row.title.strip().lower()
        return any(not title or title.strip().lower() == wanted for _, title in hits)
    return True


def _resolve_payers(
    store: RecordStore,
    user_id: str,
    batch_id: str,
    payer_matches: Sequence[PayerMatch],
) -> tuple[dict[str, str], list[str]]:
    """Return (source name -> payer id, ids created in this batch).

    A failed create removes the payers already created here and re-raises.
    """
    lookup: dict[str, str] = {}
    created: list[str] = []
    for match in payer_matches:
        if match.action is PayerAction.USE_EXISTING and match.existing_payer_id:
            lookup[match.source_name] = match.existing_payer_id
            continue
        if match.action is not PayerAction.CREATE_NEW or match.source_name in lookup:
            continue
        try:
            payer_id = store.create_payer(user_id, match.source_name, batch_id)
        except StoreError:
            for pid in created:
                try:
                    store.delete_payer(user_id, pid)
                except StoreError as cleanup_err:
                    logger.warning("payer cleanup failed payer=%s: %s", pid, cleanup_err)
            raise
        lookup[match.source_name] = payer_id
        created.append(payer_id)
    return lookup, created


def _summarize(rows: Sequence[CombinedRow], results: Sequence[ImportRowResult]) -> ImportSummary:
    imported_idx = {r.row_index for r in results if r.status is RowStatus.IMPORTED}
    imported_rows = [row for row in rows if row.row_index in imported_idx]

    def total(values: Sequence[Decimal | None]) -> Decimal:
        return sum((v for v in values if v is not None), ZERO)

    return ImportSummary(
        total_rows=len(rows),
        imported_count=len(imported_idx),
        skipped_count=sum(1 for r in results if r.status is RowStatus.SKIPPED_DUPLICATE),
        error_count=sum(1 for r in results if r.status is RowStatus.ERROR),
        total_gross=total([row.amount for row in imported_rows]),
        total_tips=total([row.tips for row in imported_rows]),
        total_fees=total([row.fees for row in imported_rows]),
    )


def _process_row(
    store: RecordStore,
    user_id: str,
    batch_id: str,
    row: CombinedRow,
    payer_lookup: dict[str, str],
    skip_duplicates: bool,
    error_log: ErrorLogBuffer,
    file_name: str,
) -> ImportRowResult:
    sources = row.combined_from_rows

    errors = list(row.errors)
    if not errors and (row.date is None or row.amount is None):
        errors.append("Date and amount are required")
    if errors:
        message = ", ".join(errors)
        error_log.add(file_name, row.row_index, "VALIDATION_ERROR", message)
        return ImportRowResult(row.row_index, RowStatus.ERROR, error=message, combined_from_rows=sources)

    payer_id = payer_lookup.get(row.payer or "")
    if payer_id is None:
        message = f'Payer "{row.payer}" not found'
        error_log.add(file_name, row.row_index, "PAYER_NOT_FOUND", message)
        return ImportRowResult(row.row_index, RowStatus.ERROR, error=message, combined_from_rows=sources)

    try:
        if skip_duplicates and _is_live_duplicate(store, user_id, row, payer_id):
            logger.debug("row %s skipped: already stored", row.row_index)
            return ImportRowResult(row.row_index, RowStatus.SKIPPED_DUPLICATE, combined_from_rows=sources)
        gig_id = store.create_gig(user_id, _to_gig_record(row, payer_id, batch_id))
    except StoreError as e:
        error_log.add(file_name, row.row_index, "GIG_INSERT_ERROR", str(e))
        return ImportRowResult(row.row_index, RowStatus.ERROR, error=str(e), combined_from_rows=sources)

    return ImportRowResult(row.row_index, RowStatus.IMPORTED, gig_id=gig_id, combined_from_rows=sources)


def commit_import(
    store: RecordStore,
    rows: Sequence[CombinedRow],
    payer_matches: Sequence[PayerMatch],
    user_id: str,
    options: ImportOptions | None = None,
    error_log: ErrorLogBuffer | None = None,
    progress: bool = True,
) -> BatchImportResult:
    """Persist ``rows`` as one import batch.

    Args:
        store: record store scoped by ``user_id``
        rows: combined rows in input order (invalid rows are reported, not stored)
        payer_matches: matcher output for the payer names in ``rows``
        user_id: owner of every record written
        options: duplicate handling and batch file name
        error_log: buffer receiving one record per failed row (optional)
        progress: show a tqdm bar when stdout is a TTY

    Returns:
        BatchImportResult with one ImportRowResult per input row

    Raises:
        ImportAbortedError: batch or payer creation failed (nothing persisted)
    """
    options = options or ImportOptions()
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    file_name = options.file_name
    started = time.perf_counter()

    try:
        batch_id = store.create_batch(
            user_id, file_name, len(rows), any(r.is_combined for r in rows)
        )
    except StoreError as e:
        error_log.add(file_name, BATCH_LEVEL_ROW, "BATCH_CREATE_ERROR", str(e))
        raise ImportAbortedError(f"Failed to create import batch: {e}") from e
    state = BatchState.CREATED
    logger.debug("batch %s %s", batch_id, state.value)

    try:
        payer_lookup, new_payers = _resolve_payers(store, user_id, batch_id, payer_matches)
    except StoreError as e:
        error_log.add(file_name, BATCH_LEVEL_ROW, "PAYER_CREATE_ERROR", str(e))
        try:
            store.delete_batch(user_id, batch_id)
        except StoreError as cleanup_err:
            logger.warning("batch cleanup failed batch=%s: %s", batch_id, cleanup_err)
        logger.debug("batch %s %s", batch_id, BatchState.ROLLED_BACK.value)
        raise ImportAbortedError(f"Failed to create payer: {e}") from e
    state = BatchState.PAYERS_RESOLVED
    logger.debug("batch %s %s new_payers=%d", batch_id, state.value, len(new_payers))

    results: list[ImportRowResult] = []
    imported = errors = 0
    with ProgressTracker(len(rows), enabled=progress) as tracker:
        for row in rows:
            result = _process_row(
                store, user_id, batch_id, row, payer_lookup, options.skip_duplicates, error_log, file_name
            )
            results.append(result)
            if result.status is RowStatus.IMPORTED:
                imported += 1
            elif result.status is RowStatus.ERROR:
                errors += 1
            tracker.advance(imported=imported, errors=errors)
    state = BatchState.ROWS_PROCESSED
    logger.debug("batch %s %s imported=%d errors=%d", batch_id, state.value, imported, errors)

    summary = _summarize(rows, results)
    state = BatchState.SUMMARIZED
    logger.debug("batch %s %s", batch_id, state.value)
    try:
        store.update_batch(
            user_id,
            batch_id,
            imported_count=summary.imported_count,
            skipped_duplicates=summary.skipped_count,
            error_count=summary.error_count,
            total_gross=summary.total_gross,
            total_tips=summary.total_tips,
            total_fees=summary.total_fees,
            new_payers_created=len(new_payers),
        )
    except StoreError as e:
        # 行は保存済み: undo 可能なので batch は残す
        error_log.add(file_name, BATCH_LEVEL_ROW, "BATCH_UPDATE_ERROR", str(e))
        logger.warning("batch %s aggregates not saved: %s", batch_id, e)
    state = BatchState.COMMITTED
    logger.debug("batch %s %s", batch_id, state.value)

    return BatchImportResult(
        batch_id=batch_id,
        results=results,
        new_payers_created=new_payers,
        summary=summary,
        state=state,
        elapsed_seconds=time.perf_counter() - started,
    )


def undo_import(store: RecordStore, batch_id: str, user_id: str) -> UndoResult:
    """Reverse a committed batch.

    Gigs tagged with the batch go first. A payer created by the batch is
    deleted only when no gig references it anymore. The batch record is
    deleted last, so a failed undo can simply be run again.

    Raises:
        UndoError: gig or payer deletion failed (batch record kept)
    """
    try:
        deleted_gigs = store.delete_gigs_by_batch(user_id, batch_id)
        candidates = store.find_payers_created_by(user_id, batch_id)
    except StoreError as e:
        raise UndoError(f"Failed to delete gigs for batch {batch_id}: {e}") from e

    deleted_payers = 0
    retained: list[str] = []
    failures: list[str] = []
    for payer_id in candidates:
        try:
            if store.count_gigs_for_payer(user_id, payer_id) > 0:
                retained.append(payer_id)
                continue
            store.delete_payer(user_id, payer_id)
            deleted_payers += 1
        except StoreError as e:
            failures.append(f"{payer_id}: {e}")

    if failures:
        raise UndoError(f"Failed to delete payers for batch {batch_id}: {'; '.join(failures)}")
    if retained:
        logger.info("batch %s: kept %d payer(s) still referenced by other gigs", batch_id, len(retained))

    try:
        store.delete_batch(user_id, batch_id)
    except StoreError as e:
        raise UndoError(f"Failed to delete import batch {batch_id}: {e}") from e

    return UndoResult(
        batch_id=batch_id,
        deleted_gigs=deleted_gigs,
        deleted_payers=deleted_payers,
        retained_payers=retained,
    )


def get_last_import_batch(store: RecordStore, user_id: str) -> ImportBatch | None:
    return store.get_last_batch(user_id)


def resolve_mapping(headers: Sequence[str], configured: ColumnMapping | None) -> ColumnMapping:
    """Configured mapping, or auto-detection; fails when required fields stay unmapped."""
    mapping = configured or auto_detect_columns(headers)
    missing = mapping.missing_required()
    if missing:
        raise ProcessingError(f"required columns not mapped: {', '.join(missing)}")
    unknown = [h for h in mapping.as_dict().values() if h not in headers]
    if unknown:
        raise ProcessingError(f"mapped headers not found in file: {', '.join(unknown)}")
    return mapping


def prepare_plan(config: ImportConfig, store: RecordStore) -> ImportPlan:
    """Read the configured input file and plan it against the store's records."""
    data = read_rows(Path(config.input_file))
    mapping = resolve_mapping(data.headers, config.column_mapping)
    return plan_import(
        data.rows,
        mapping,
        store.list_payers(config.user_id),
        store.list_gigs(config.user_id),
        combine=config.options.combine_rows,
        null_sentinels=config.null_sentinels,
    )


def run_import(
    config: ImportConfig,
    store: RecordStore,
    error_log: ErrorLogBuffer | None = None,
    progress: bool = True,
) -> BatchImportResult:
    """Read, plan and commit one file. The error log is flushed once at the end.

    Raises:
        ReaderError: input file unreadable
        ProcessingError: required columns unmapped, or the commit was aborted
    """
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    try:
        plan = prepare_plan(config, store)
        rows = plan.rows
        if config.options.skip_duplicates:
            flagged = flagged_row_indices(plan.duplicates)
            if flagged:
                rows = drop_flagged_rows(rows, flagged)
                logger.info(
                    "dropped %d row(s) matching existing gigs (source rows: %s)",
                    len(plan.rows) - len(rows),
                    ", ".join(str(i) for i in sorted(flagged)),
                )
        return commit_import(
            store,
            rows,
            plan.payer_matches,
            config.user_id,
            config.options,
            error_log=error_log,
            progress=progress,
        )
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info("error log written: %s", path)
