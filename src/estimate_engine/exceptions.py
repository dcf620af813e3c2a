"""
Exception hierarchy for the Estimate Integrity Engine.

Parser-level problems are reported as warnings on the parse result. The
exceptions here cover the refusal conditions that must stop an analysis
before a report is produced, plus configuration errors.
"""

from typing import Any


class EstimateEngineError(Exception):
    """Base error carrying a stable code and a remediation hint."""

    code = "ENGINE_ERROR"
    remediation = "Review the input and try again."

    def __init__(
        self,
        message: str,
        *,
        remediation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if remediation is not None:
            self.remediation = remediation
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API or CLI output."""
        return {
            "code": self.code,
            "message": self.message,
            "remediation": self.remediation,
            "details": self.details,
        }


class FormatDetectionError(EstimateEngineError):
    """No column layout could be identified in the estimate text."""

    code = "FORMAT_UNDETECTED"
    remediation = (
        "Export the estimate as tab-separated text or a fixed-width report "
        "with trade codes, quantities, units and RCV columns."
    )


class LowConfidenceError(EstimateEngineError):
    """The parse succeeded but scored below the caller's minimum."""

    code = "LOW_CONFIDENCE"
    remediation = (
        "Check the parse warnings and re-export the estimate with consistent "
        "column alignment."
    )

    def __init__(self, score: int, minimum: int, warnings: list[str] | None = None) -> None:
        super().__init__(
            f"Validation score {score} is below the required minimum of {minimum}",
            details={"validation_score": score, "minimum": minimum, "warnings": warnings or []},
        )
        self.score = score
        self.minimum = minimum


class GeometryValidationError(EstimateEngineError):
    """One or more rooms carry missing, non-positive or implausible dimensions."""

    code = "INVALID_GEOMETRY"
    remediation = "Correct the listed room dimensions (feet, greater than 0, at most 100)."

    def __init__(self, errors: list[str]) -> None:
        super().__init__(
            f"Invalid room geometry: {len(errors)} error(s)",
            details={"errors": list(errors)},
        )
        self.errors = list(errors)


class CostBaselineError(EstimateEngineError):
    """A cost baseline table or entry lookup is malformed."""

    code = "BASELINE_INVALID"
    remediation = "Provide a baseline table with version, effective_date, region and entries."


class OverlayError(EstimateEngineError):
    """The AI overlay returned an unusable response."""

    code = "OVERLAY_FAILED"
    remediation = "Deterministic findings remain authoritative; the overlay is optional."
