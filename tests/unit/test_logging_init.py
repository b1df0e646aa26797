from __future__ import annotations

import logging
from io import StringIO

import gig_importer.logging.init as log_init
from gig_importer.logging.init import (
    APP_LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    set_debug,
    setup_logging,
)


def _capture(logger: logging.Logger) -> StringIO:
    out = StringIO()
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    handler = logging.StreamHandler(out)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return out


def test_setup_logging_creates_logger_with_labeled_formatter(clean_logging):
    logger = setup_logging()
    assert logger.name == APP_LOGGER_NAME == "gig_importer"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_logging_labeled_prefixes():
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger("test_gig_importer_labels")
    logger.setLevel(logging.INFO)
    out = _capture(logger)

    logger.info("Importing gigs from: data/gigs.csv")
    logger.warning("row 3: Invalid date: 02/30/2026")
    logger.error("config: config file not found")
    logger.log(SUMMARY_LEVEL, "batch=b1 rows=1")

    assert out.getvalue().splitlines() == [
        "INFO Importing gigs from: data/gigs.csv",
        "WARN row 3: Invalid date: 02/30/2026",
        "ERROR config: config file not found",
        "SUMMARY batch=b1 rows=1",
    ]


def test_setup_logging_idempotent(clean_logging):
    logger1 = setup_logging()
    logger2 = setup_logging()
    assert logger1 is logger2
    assert len(logger1.handlers) == 1
    assert get_logger() is logger1


def test_module_loggers_propagate_to_app_logger(clean_logging):
    logger = setup_logging()
    out = _capture(logger)
    logging.getLogger("gig_importer.services.orchestrator").info("dropped 1 row(s)")
    assert out.getvalue() == "INFO dropped 1 row(s)\n"


def test_set_debug_lowers_levels(clean_logging):
    logger = setup_logging()
    set_debug(logger)
    assert logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in logger.handlers)
    # 後続テストへ持ち越さない
    logger.setLevel(logging.INFO)


def test_log_summary_convenience_function(clean_logging):
    logger = setup_logging()
    out = _capture(logger)
    log_summary("undo batch=b1 deleted_gigs=3 deleted_payers=2")
    assert out.getvalue().strip() == "SUMMARY undo batch=b1 deleted_gigs=3 deleted_payers=2"
    assert logging.getLevelName(SUMMARY_LEVEL) == "SUMMARY"


def test_reset_logging_clears_cached_logger():
    setup_logging()
    reset_logging()
    assert log_init._logger is None
