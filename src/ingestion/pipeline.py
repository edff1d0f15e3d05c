"""
Bulk ingestion pipeline for claim CSV files.

Public API: IngestionPipeline(store).ingest(file_content) -> IngestionOutcome

Rows are processed strictly in order. Each row ends in exactly one
outcome (success, validation failure, duplicate, store failure) and a
failing row never stops the rest of the batch.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union

from ..claims.errors import ClaimValidationError
from ..claims.schema import Claim, ClaimInput
from ..storage.claim_store import ClaimStore
from .csv_parser import CsvRowParser
from .models import CsvRow, IngestionOutcome

logger = logging.getLogger(__name__)

FIRST_DATA_ROW = 2

_INTEGER = re.compile(r"[+-]?[0-9]+")


# ============================================================================
# Row Outcomes
# ============================================================================


@dataclass(frozen=True)
class Success:
    claim_id: str


@dataclass(frozen=True)
class ValidationFailure:
    messages: List[str]

    @property
    def message(self) -> str:
        return ", ".join(self.messages)


@dataclass(frozen=True)
class DuplicateFailure:
    claim_id: str

    @property
    def message(self) -> str:
        return f"Duplicate claimId: {self.claim_id}"


@dataclass(frozen=True)
class StoreFailure:
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


RowOutcome = Union[Success, ValidationFailure, DuplicateFailure, StoreFailure]


# ============================================================================
# Coercion
# ============================================================================


def parse_amount(value: str) -> int:
    """Whole-number amount, or 0 when the text is not an integer."""
    value = (value or "").strip()
    return int(value) if _INTEGER.fullmatch(value) else 0


def row_to_claim_input(row: CsvRow) -> ClaimInput:
    """Trim every field and coerce the amount."""
    return ClaimInput(
        claim_id=row.claim_id.strip(),
        member_id=row.member_id.strip(),
        provider=row.provider.strip(),
        service_date=row.service_date.strip(),
        total_amount=parse_amount(row.total_amount),
        diagnosis_codes=row.diagnosis_codes.strip(),
    )


# ============================================================================
# Pipeline
# ============================================================================


class IngestionPipeline:
    """
    Validates, deduplicates and persists a batch of claim rows.

    Duplicate detection is a point-in-time lookup, not a conditional
    write: two batches ingesting the same claim ID concurrently can both
    see it as new, and the later save wins.
    """

    def __init__(self, store: ClaimStore, parser: Optional[CsvRowParser] = None):
        """
        Initialize ingestion pipeline.

        Args:
            store: Claim store used for duplicate checks and saves
            parser: CSV parser (default: CsvRowParser())
        """
        self.store = store
        self.parser = parser or CsvRowParser()

    async def ingest(self, file_content: str) -> IngestionOutcome:
        """
        Ingest one CSV file.

        Never raises for row-level problems; a failure of the parser
        itself is reported as a single error on row 0.

        Args:
            file_content: Whole CSV file as text

        Returns:
            IngestionOutcome with counts and per-row errors
        """
        start_time = datetime.now()
        outcome = IngestionOutcome()

        try:
            parsed = self.parser.parse(file_content)
            outcome.add_errors(parsed.errors)
            failed_rows = {error.row for error in parsed.errors}

            for index, row in enumerate(parsed.rows):
                row_number = index + FIRST_DATA_ROW
                if row_number in failed_rows:
                    continue
                self._record(outcome, row_number, await self.process_row(row))

        except Exception as e:
            logger.error(f"Ingestion failed: {e}", exc_info=True)
            outcome.add_error(0, str(e) or "Failed to process file")

        total_time_ms = (datetime.now() - start_time).total_seconds() * 1000
        logger.info(
            f"Ingestion complete: "
            f"success={outcome.success_count}, "
            f"errors={outcome.error_count}, "
            f"total_time={total_time_ms:.0f}ms"
        )
        return outcome

    async def process_row(self, row: CsvRow) -> RowOutcome:
        """
        Run one row through validation, the duplicate check and the save.

        Any exception is turned into a row outcome.
        """
        try:
            claim_input = row_to_claim_input(row)

            validation = Claim.validate(claim_input)
            if not validation.is_valid:
                return ValidationFailure(validation.errors)

            if await self.store.find_by_id(claim_input.claim_id) is not None:
                return DuplicateFailure(claim_input.claim_id)

            claim = Claim.create(claim_input)
            await self.store.save(claim)
            return Success(claim.claim_id)

        except ClaimValidationError as e:
            return ValidationFailure(e.errors)
        except Exception as e:
            return StoreFailure(e)

    def _record(self, outcome: IngestionOutcome, row_number: int, result: RowOutcome) -> None:
        if isinstance(result, Success):
            outcome.add_success()
            return

        logger.warning(f"Row {row_number} rejected: {result.message}")
        outcome.add_error(row_number, result.message)
