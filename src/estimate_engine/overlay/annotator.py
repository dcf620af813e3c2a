"""
AI overlay boundary.

The overlay only ever sees the computed numeric summary of a
ClaimIntelligenceReport. It gets one call under a bounded timeout; any
failure, timeout or prohibited wording yields the deterministic fallback.
Retries belong to the calling service.
"""

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core.findings import ClaimIntelligenceReport, RiskTier
from ..exceptions import OverlayError
from ..utils.metrics import MetricsSink, NullMetricsSink

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0

PROHIBITED_TERMS = (
    "should",
    "must",
    "recommend",
    "advise",
    "negotiate",
    "demand",
    "entitled",
    "owed",
    "deserve",
    "bad faith",
    "lawsuit",
    "sue",
)

_PROHIBITED = re.compile(
    r"\b(" + "|".join(re.escape(term) for term in PROHIBITED_TERMS) + r")\w*", re.I
)

FALLBACK_SUMMARY = (
    "The estimate was analyzed using deterministic engines. AI overlay could not be "
    "generated. Review the structured findings for details."
)


class OverlayStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FALLBACK = "FALLBACK"
    SKIPPED = "SKIPPED"


class OverlayInput(BaseModel):
    """Numbers and counts passed to the annotator; never estimate text."""

    model_config = ConfigDict(frozen=True)

    line_item_count: int
    total_rcv: float
    total_acv: float
    structural_integrity_score: int
    consolidated_risk_score: int
    risk_tier: RiskTier
    exposure_min: float
    exposure_max: float
    code_upgrade_flags: int
    report_deviations: int
    dimension_variances: int
    critical_completeness_issues: int
    critical_deviations: int
    critical_code_risks: int

    @classmethod
    def from_report(cls, report: ClaimIntelligenceReport) -> "OverlayInput":
        return cls(
            line_item_count=report.line_item_count,
            total_rcv=float(report.total_rcv),
            total_acv=float(report.total_acv),
            structural_integrity_score=report.structural_integrity_score,
            consolidated_risk_score=report.consolidated_risk_score,
            risk_tier=report.risk_tier,
            exposure_min=float(report.total_exposure_min),
            exposure_max=float(report.total_exposure_max),
            code_upgrade_flags=report.code_upgrade_flags,
            report_deviations=report.report_deviations,
            dimension_variances=report.dimension_variances,
            critical_completeness_issues=report.critical_completeness_issues,
            critical_deviations=report.critical_deviations,
            critical_code_risks=report.critical_code_risks,
        )


class AIObservations(BaseModel):
    """Validated annotator output."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    structural_observations: list[str]
    pattern_observations: list[str]
    neutral_summary: str = Field(min_length=10)

    def texts(self) -> list[str]:
        return [*self.structural_observations, *self.pattern_observations, self.neutral_summary]


class OverlayResult(BaseModel):
    status: OverlayStatus
    observations: AIObservations
    model: str | None = None
    duration_seconds: float = 0.0
    error: str | None = None


@runtime_checkable
class Annotator(Protocol):
    """Anything that turns an overlay payload into an observations dict."""

    model: str

    def annotate(self, payload: dict[str, Any]) -> dict[str, Any]: ...


def find_prohibited(texts: list[str]) -> list[str]:
    """Prohibited terms present in ``texts``, matched on word starts."""
    found = {match.group(1).lower() for text in texts for match in _PROHIBITED.finditer(text)}
    return sorted(found)


def fallback_observations(report: ClaimIntelligenceReport) -> AIObservations:
    """Deterministic observations used whenever the overlay is unavailable."""
    return AIObservations(
        structural_observations=[
            f"Estimate contains {report.line_item_count} line items",
            f"Total RCV: ${report.total_rcv:,.2f}",
            f"Structural integrity score: {report.structural_integrity_score}/100",
        ],
        pattern_observations=["AI analysis unavailable - deterministic findings provided"],
        neutral_summary=FALLBACK_SUMMARY,
    )


def validate_observations(raw: Any) -> AIObservations:
    """
    Validate an annotator response.

    Raises:
        OverlayError: If the response is malformed or uses prohibited language
    """
    if not isinstance(raw, dict):
        raise OverlayError("AI response is not an object")
    try:
        observations = AIObservations.model_validate(raw)
    except ValidationError as e:
        raise OverlayError(f"AI response failed schema validation: {e}") from e
    prohibited = find_prohibited(observations.texts())
    if prohibited:
        raise OverlayError(
            f"AI output contains prohibited language: {', '.join(prohibited)}",
            details={"terms": prohibited},
        )
    return observations


def run_overlay(
    report: ClaimIntelligenceReport,
    annotator: Annotator | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    metrics: MetricsSink | None = None,
) -> OverlayResult:
    """
    Annotate a report with neutral observations.

    Args:
        report: Completed deterministic report
        annotator: Annotator to call; None skips the overlay
        timeout_seconds: Upper bound on the single annotator call
        metrics: Optional metrics sink

    Returns:
        OverlayResult with status SUCCESS, FALLBACK or SKIPPED
    """
    metrics = metrics or NullMetricsSink()
    if annotator is None:
        metrics.increment("overlay.result", status=OverlayStatus.SKIPPED.value)
        return OverlayResult(status=OverlayStatus.SKIPPED, observations=fallback_observations(report))

    payload = OverlayInput.from_report(report).model_dump(mode="json")
    model = getattr(annotator, "model", None)
    start = time.perf_counter()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="overlay")
    try:
        future = executor.submit(annotator.annotate, payload)
        try:
            raw = future.result(timeout=timeout_seconds)
        except FutureTimeout as e:
            raise OverlayError(f"AI call timed out after {timeout_seconds:g}s") from e
        except OverlayError:
            raise
        except Exception as e:
            raise OverlayError(f"AI call failed: {e}") from e
        observations = validate_observations(raw)
    except OverlayError as e:
        duration = time.perf_counter() - start
        logger.warning("AI overlay fallback: %s", e.message)
        metrics.increment("overlay.result", status=OverlayStatus.FALLBACK.value)
        return OverlayResult(
            status=OverlayStatus.FALLBACK,
            observations=fallback_observations(report),
            model=model,
            duration_seconds=round(duration, 3),
            error=e.message,
        )
    finally:
        # a hung call is abandoned rather than awaited
        executor.shutdown(wait=False, cancel_futures=True)

    duration = time.perf_counter() - start
    metrics.increment("overlay.result", status=OverlayStatus.SUCCESS.value)
    metrics.timing("overlay.duration", duration)
    logger.info("AI overlay succeeded in %.2fs", duration)
    return OverlayResult(
        status=OverlayStatus.SUCCESS,
        observations=observations,
        model=model,
        duration_seconds=round(duration, 3),
    )
