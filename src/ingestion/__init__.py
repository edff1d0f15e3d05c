"""
Claims ingestion module.

CSV parsing and the validate/deduplicate/persist pipeline for bulk
claim files.
"""

from .csv_parser import EXPECTED_HEADERS, CsvRowParser
from .models import CsvParseResult, CsvRow, IngestionError, IngestionOutcome
from .pipeline import (
    DuplicateFailure,
    IngestionPipeline,
    StoreFailure,
    Success,
    ValidationFailure,
    parse_amount,
    row_to_claim_input,
)

__all__ = [
    # Pipeline
    "IngestionPipeline",
    "CsvRowParser",
    "EXPECTED_HEADERS",
    "parse_amount",
    "row_to_claim_input",
    # Models
    "CsvRow",
    "CsvParseResult",
    "IngestionError",
    "IngestionOutcome",
    # Row outcomes
    "Success",
    "ValidationFailure",
    "DuplicateFailure",
    "StoreFailure",
]
