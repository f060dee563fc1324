"""Custom exception hierarchy for KiwiBooks.

All application errors inherit from KiwiBooksException so the API layer can
render them uniformly. Messages are meant to be shown to the user verbatim.

Error codes follow pattern: [CATEGORY][NUMBER]
- TAX: Tax calculation / return errors (300-399)
- SYS: System errors (400-499)
"""

from __future__ import annotations

from typing import Any


class KiwiBooksException(Exception):
    """Base exception for all KiwiBooks application errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with user-facing message and metadata.

        Args:
            message: User-friendly error message
            code: Unique error code (e.g., "TAX300")
            status_code: HTTP status code (default: 400 Bad Request)
            details: Optional additional context
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "details": self.details,
            }
        }


# ============================================================================
# TAX ERRORS (TAX300-399)
# ============================================================================

class TaxError(KiwiBooksException):
    """Base class for tax calculation and tax return errors."""
    pass


class InvalidConfigurationError(TaxError):
    """Tax configuration carries an unusable rate or shape."""

    def __init__(self, reason: str, tax_rate: Any = None):
        super().__init__(
            message=reason,
            code="TAX300",
            status_code=400,
            details={"tax_rate": str(tax_rate)} if tax_rate is not None else {},
        )


class MissingConfigurationError(TaxError):
    """A calculation was requested without any tax configuration."""

    def __init__(self):
        super().__init__(
            message="Tax configuration is required",
            code="TAX301",
            status_code=400,
        )


class InvalidRequestError(TaxError):
    """Request input failed validation; carries every problem found."""

    def __init__(self, errors: list[str], message: str = "Invalid tax calculation request"):
        super().__init__(
            message=message,
            code="TAX302",
            status_code=422,
            details={"errors": list(errors)},
        )
        self.errors = list(errors)


class InvalidPeriodError(TaxError):
    """Reporting period dates are unusable for a return."""

    def __init__(self, reason: str, period_start: Any = None, period_end: Any = None):
        super().__init__(
            message=reason,
            code="TAX303",
            status_code=400,
            details={
                "period_start": str(period_start) if period_start is not None else None,
                "period_end": str(period_end) if period_end is not None else None,
            },
        )


class MissingTaxConfigurationError(TaxError):
    """No active configuration of the required tax type exists for the user."""

    def __init__(self, tax_type: str = "GST", user_id: int | None = None):
        super().__init__(
            message=f"{tax_type} configuration not found for user",
            code="TAX304",
            status_code=404,
            details={"tax_type": tax_type, "user_id": user_id},
        )


class InvalidStateTransitionError(TaxError):
    """Tax return status does not allow the requested operation."""

    def __init__(self, message: str, current_status: str | None = None, action: str | None = None):
        super().__init__(
            message=message,
            code="TAX305",
            status_code=409,
            details={"current_status": current_status, "action": action},
        )


class TaxReturnNotFoundError(TaxError):
    """Tax return does not exist."""

    def __init__(self, tax_return_id: int | None = None):
        super().__init__(
            message="Tax return not found",
            code="TAX306",
            status_code=404,
            details={"tax_return_id": tax_return_id} if tax_return_id is not None else {},
        )


class ConcurrentModificationError(TaxError):
    """Tax return changed between read and write (optimistic lock lost)."""

    def __init__(self, tax_return_id: int, expected_version: int | None = None):
        super().__init__(
            message="Tax return was modified by another request. Reload and try again.",
            code="TAX307",
            status_code=409,
            details={"tax_return_id": tax_return_id, "expected_version": expected_version},
        )


# ============================================================================
# SYSTEM ERRORS (SYS400-499)
# ============================================================================

class SubmissionGatewayNotConfigured(KiwiBooksException):
    """Real IRD submission was enabled without credentials."""

    def __init__(self, parameter: str):
        super().__init__(
            message=f"Configuration error: {parameter} is not configured properly",
            code="SYS401",
            status_code=500,
            details={"parameter": parameter},
        )
