"""
Canonical schema for healthcare claim records.

Defines the raw, string-shaped input a claim is built from and the
validated, immutable Claim model. The wire/storage representation uses
camelCase attribute names and is produced by Claim.serialize().
"""

from dataclasses import dataclass, fields
from datetime import date
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel

from ..utils.dates import format_date, parse_iso_date
from .errors import ClaimValidationError


# ============================================================================
# Raw Input
# ============================================================================


@dataclass(frozen=True)
class ClaimInput:
    """
    Claim fields before validation.

    Everything is a string except total_amount, which the caller has
    already coerced (ingestion turns unparsable amounts into 0).
    diagnosis_codes is the semicolon-delimited form.
    """
    claim_id: str = ""
    member_id: str = ""
    provider: str = ""
    service_date: str = ""
    total_amount: Any = 0
    diagnosis_codes: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClaimInput":
        """
        Build input from a dict keyed by snake_case or camelCase names.

        Typed values (a date, a list of codes) are turned back into
        their string form so they go through the same rules.
        """
        values = {}
        for f in fields(cls):
            value = data.get(f.name, data.get(to_camel(f.name)))
            if f.name == "total_amount":
                values[f.name] = value
                continue
            if value is None:
                value = ""
            elif isinstance(value, date):
                value = format_date(value)
            elif isinstance(value, (list, tuple)):
                value = ";".join(str(v) for v in value)
            values[f.name] = str(value)
        return cls(**values)


def parse_diagnosis_codes(value: Optional[str]) -> List[str]:
    """Split a ``;``-delimited code list, trimming pieces and dropping empty ones."""
    if not value or not value.strip():
        return []
    return [code.strip() for code in value.split(";") if code.strip()]


# ============================================================================
# Validation Result
# ============================================================================


class ClaimValidationResult(BaseModel):
    """Outcome of checking raw claim fields against the entity rules."""

    is_valid: bool = Field(description="True when no rule was violated")
    errors: List[str] = Field(
        default_factory=list,
        description="Every violated rule, in a fixed order"
    )


# ============================================================================
# Main Claim Schema
# ============================================================================


class Claim(BaseModel):
    """
    A validated healthcare claim.

    Instances are immutable. Any construction path (keyword arguments,
    a ClaimInput, a stored record) runs Claim.validate() first and
    raises ClaimValidationError listing every violation.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    claim_id: str = Field(description="Unique claim identifier")
    member_id: str = Field(description="Member the claim belongs to")
    provider: str = Field(description="Billing provider")
    service_date: date = Field(description="Date of service")
    total_amount: int = Field(description="Billed amount in minor units (cents)")
    diagnosis_codes: List[str] = Field(
        default_factory=list,
        description="Diagnosis codes in submission order"
    )

    @staticmethod
    def validate(raw: ClaimInput, today: Optional[date] = None) -> ClaimValidationResult:
        """
        Check raw fields against every claim rule.

        Pure: collects all violations instead of stopping at the first.

        Args:
            raw: Unvalidated claim fields
            today: Reference date for the future-date rule (default: today)

        Returns:
            ClaimValidationResult with is_valid and the list of errors
        """
        errors = []

        if not (raw.claim_id or "").strip():
            errors.append("Missing claimId")
        if not (raw.member_id or "").strip():
            errors.append("Missing memberId")
        if not (raw.provider or "").strip():
            errors.append("Missing provider")

        service_date = (raw.service_date or "").strip()
        if not service_date:
            errors.append("Missing serviceDate")
        else:
            parsed = parse_iso_date(service_date)
            if parsed is None:
                errors.append("Invalid serviceDate format")
            elif parsed > (today or date.today()):
                errors.append("Service date cannot be in the future")

        amount = raw.total_amount
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            errors.append("Invalid totalAmount (must be a positive integer)")

        return ClaimValidationResult(is_valid=not errors, errors=errors)

    @model_validator(mode="before")
    @classmethod
    def _validate_raw_fields(cls, data: Any) -> Any:
        if isinstance(data, ClaimInput):
            raw = data
        elif isinstance(data, Mapping):
            raw = ClaimInput.from_mapping(data)
        else:
            return data

        validation = cls.validate(raw)
        if not validation.is_valid:
            raise ClaimValidationError(validation.errors)

        return {
            "claim_id": raw.claim_id,
            "member_id": raw.member_id,
            "provider": raw.provider,
            "service_date": parse_iso_date(raw.service_date),
            "total_amount": raw.total_amount,
            "diagnosis_codes": parse_diagnosis_codes(raw.diagnosis_codes),
        }

    @field_serializer("service_date")
    def _format_service_date(self, value: date) -> str:
        return format_date(value)

    @field_serializer("diagnosis_codes")
    def _join_diagnosis_codes(self, value: List[str]) -> str:
        return ";".join(value)

    @classmethod
    def create(cls, raw: ClaimInput) -> "Claim":
        """Validate raw fields and build a Claim (raises ClaimValidationError)."""
        return cls.model_validate(raw)

    @classmethod
    def deserialize(cls, record: Mapping[str, Any]) -> "Claim":
        """Rebuild a Claim from its wire/storage record."""
        return cls.model_validate(record)

    def serialize(self) -> dict:
        """
        Canonical wire/storage record.

        ``{claimId, memberId, provider, serviceDate: "YYYY-MM-DD",
        totalAmount, diagnosisCodes: "c1;c2"}``
        """
        return self.model_dump(by_alias=True)

    def to_input(self) -> ClaimInput:
        """Back to the raw field shape."""
        return ClaimInput.from_mapping(self.serialize())
