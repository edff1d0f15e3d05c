"""Error types raised by the claims domain."""

from typing import Any, Dict, List


class ClaimsError(Exception):
    """
    Base exception for claims domain errors.

    Subclasses carry a machine-readable ``code`` and an HTTP-style
    ``status_code`` so the API layer can translate them without
    inspecting messages.
    """

    code: str = "CLAIMS_ERROR"
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of error
        """
        return {
            "error": self.name,
            "message": self.message,
            "code": self.code,
        }


class ClaimValidationError(ClaimsError):
    """
    Raised when claim fields break one or more entity rules.

    The message lists every violated rule, joined by ``", "``.
    """

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(", ".join(self.errors))


class NotFoundError(ClaimsError):
    """Raised when a single claim looked up by ID does not exist."""

    code = "NOT_FOUND"
    status_code = 404
