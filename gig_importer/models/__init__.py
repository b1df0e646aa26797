"""Domain models for the gig importer.

This package contains the value objects shared across the normalize ->
match -> detect -> combine -> commit pipeline.
"""

from .config_models import DatabaseConfig, ImportConfig
from .error_record import ErrorRecord
from .import_result import (
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
from .matching import (
    DuplicateConfidence,
    DuplicateGroup,
    ExistingGig,
    ExistingPayer,
    MatchConfidence,
    PayerAction,
    PayerMatch,
)
from .rows import ColumnMapping, CombinedRow, NormalizedRow, RawRow

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "ImportOptions",
    # Row models
    "RawRow",
    "ColumnMapping",
    "NormalizedRow",
    "CombinedRow",
    # Matching models
    "MatchConfidence",
    "PayerAction",
    "PayerMatch",
    "DuplicateConfidence",
    "DuplicateGroup",
    "ExistingPayer",
    "ExistingGig",
    # Batch models
    "BatchState",
    "RowStatus",
    "GigRecord",
    "ImportBatch",
    "ImportRowResult",
    "ImportSummary",
    "BatchImportResult",
    "UndoResult",
    "ErrorRecord",
]
