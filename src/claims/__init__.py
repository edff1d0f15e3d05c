"""
Healthcare claims domain.

Claim entity, validation rules, error types and read use cases.
"""

from .errors import ClaimsError, ClaimValidationError, NotFoundError
from .schema import (
    Claim,
    ClaimInput,
    ClaimValidationResult,
    parse_diagnosis_codes,
)

__all__ = [
    # Models
    "Claim",
    "ClaimInput",
    "ClaimValidationResult",
    "parse_diagnosis_codes",
    # Errors
    "ClaimsError",
    "ClaimValidationError",
    "NotFoundError",
]
