"""
Data shapes exchanged between the CSV parser and the ingestion pipeline.
"""

from dataclasses import dataclass, field, fields
from typing import Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


@dataclass(frozen=True)
class CsvRow:
    """
    One data row of a claims CSV file.

    All fields are raw strings; numeric and date coercion happens in
    the pipeline.
    """
    claim_id: str = ""
    member_id: str = ""
    provider: str = ""
    service_date: str = ""
    total_amount: str = ""
    diagnosis_codes: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Optional[str]]) -> "CsvRow":
        """Build a row from a header -> value mapping (camelCase headers)."""
        return cls(**{
            f.name: (data.get(to_camel(f.name)) or "").strip()
            for f in fields(cls)
        })


class IngestionError(BaseModel):
    """A problem attributed to one CSV row (0 = whole file, 1 = header)."""

    row: int = Field(ge=0, description="CSV row number, header is row 1")
    message: str = Field(description="What went wrong")


@dataclass
class CsvParseResult:
    """Rows in file order plus the structural errors found while reading them."""
    rows: List[CsvRow] = field(default_factory=list)
    errors: List[IngestionError] = field(default_factory=list)


class IngestionOutcome(BaseModel):
    """
    Summary of one ingestion run.

    success_count + error_count always equals the number of recorded
    row outcomes plus the structural errors reported by the parser.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success_count: int = Field(default=0, ge=0, description="Claims persisted")
    error_count: int = Field(default=0, ge=0, description="Entries in errors")
    errors: List[IngestionError] = Field(
        default_factory=list,
        description="Errors in the order they were found"
    )

    def add_error(self, row: int, message: str) -> None:
        self.errors.append(IngestionError(row=row, message=message))
        self.error_count += 1

    def add_errors(self, errors: Iterable[IngestionError]) -> None:
        for error in errors:
            self.add_error(error.row, error.message)

    def add_success(self) -> None:
        self.success_count += 1

    def to_dict(self) -> dict:
        """Convert to the API response shape."""
        return self.model_dump(by_alias=True)
