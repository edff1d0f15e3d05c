"""
CSV row parser for claim files.

Turns raw CSV text into CsvRow records and reports structural problems
only (bad headers, wrong column counts, unreadable CSV). Business rules
are left to the ingestion pipeline.
"""

import csv
import io
import logging
from typing import List, Sequence

from .models import CsvParseResult, CsvRow, IngestionError

logger = logging.getLogger(__name__)

EXPECTED_HEADERS = [
    "claimId",
    "memberId",
    "provider",
    "serviceDate",
    "totalAmount",
    "diagnosisCodes",
]

HEADER_ROW = 1
FILE_ROW = 0


class CsvRowParser:
    """
    Parser for claim CSV files with a header row.

    Row numbers follow the file layout seen by a user: the header is
    row 1 and the first data row is row 2. Blank lines are ignored and
    do not consume a row number. A row with a structural error is still
    returned (with whatever fields it has) so positional numbering stays
    aligned; the error carries its row number.
    """

    def __init__(self, expected_headers: Sequence[str] = tuple(EXPECTED_HEADERS)):
        self.expected_headers = list(expected_headers)

    def parse(self, file_content: str) -> CsvParseResult:
        """
        Parse CSV text.

        Args:
            file_content: Whole CSV file as text

        Returns:
            CsvParseResult with rows and structural errors
        """
        result = CsvParseResult()

        try:
            records = self._read_records(file_content)
        except csv.Error as e:
            logger.warning(f"CSV parsing failed: {e}")
            result.errors.append(IngestionError(row=FILE_ROW, message=f"CSV parsing failed: {e}"))
            return result

        if records:
            headers = [header.strip() for header in records[0]]
            result.errors.extend(self._check_headers(headers))

            for index, values in enumerate(records[1:]):
                row_number = index + 2
                if len(values) != len(headers):
                    result.errors.append(IngestionError(
                        row=row_number,
                        message="Invalid row format or insufficient columns",
                    ))
                result.rows.append(CsvRow.from_mapping(dict(zip(headers, values))))

        if not result.rows and not result.errors:
            result.errors.append(IngestionError(row=FILE_ROW, message="No valid data found in CSV file"))

        logger.debug(f"Parsed CSV: {len(result.rows)} rows, {len(result.errors)} structural errors")
        return result

    def _read_records(self, file_content: str) -> List[List[str]]:
        """Read non-blank records (raises csv.Error on malformed quoting)."""
        reader = csv.reader(io.StringIO(file_content.lstrip("\ufeff")), strict=True)
        return [record for record in reader if any(cell.strip() for cell in record)]

    def _check_headers(self, headers: List[str]) -> List[IngestionError]:
        errors = []

        missing = [h for h in self.expected_headers if h not in headers]
        extra = [h for h in headers if h not in self.expected_headers]

        if missing:
            errors.append(IngestionError(
                row=HEADER_ROW,
                message=f"Missing required headers: {', '.join(missing)}",
            ))
        if extra:
            errors.append(IngestionError(
                row=HEADER_ROW,
                message=f"Unexpected headers found: {', '.join(extra)}",
            ))

        return errors
