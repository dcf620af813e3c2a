"""
Estimate Integrity Engine - Main Orchestrator.
Parses an estimate, enforces the refusal conditions and runs every analysis engine.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from .config import EngineSettings
from .core.cost_baseline import CostBaseline, get_baseline
from .core.findings import (
    ClaimIntelligenceReport,
    CodeUpgradeAnalysis,
    CompletenessAnalysis,
    DeviationAnalysis,
    ExposureAnalysis,
    LossExpectation,
    LossSeverity,
    LossType,
    ParsedReport,
    ReportDirective,
)
from .core.models import ExpectedQuantities, Room, ScopeRule, StructuredEstimate
from .core.structural_parser import EstimateParser
from .exceptions import (
    FormatDetectionError,
    GeometryValidationError,
    LowConfidenceError,
    OverlayError,
)
from .modules.code_upgrade import CodeUpgradeEngine
from .modules.completeness import CompletenessEngine
from .modules.deviation import DeviationEngine
from .modules.dimension import calculate_expected_quantities, infer_scope_rule, validate_rooms
from .modules.exposure import ExposureEngine
from .modules.loss_expectation import LossExpectationEngine
from .modules.report_directives import extract_directives
from .overlay.annotator import Annotator, OverlayResult, run_overlay
from .overlay.gemini import GeminiAnnotator
from .reporting.intelligence import generate_claim_intelligence
from .utils.metrics import MetricsSink, NullMetricsSink, timed

logger = logging.getLogger(__name__)

DirectiveInput = ParsedReport | Iterable[ReportDirective | Mapping[str, Any]]


class EstimateAnalysis(BaseModel):
    """Every output of one analysis run."""

    estimate: StructuredEstimate
    exposure: ExposureAnalysis
    completeness: CompletenessAnalysis
    loss_expectation: LossExpectation
    code_upgrades: CodeUpgradeAnalysis
    scope_rule: ScopeRule | None = None
    expected_quantities: ExpectedQuantities | None = None
    report: ParsedReport | None = None
    deviations: DeviationAnalysis | None = None
    intelligence: ClaimIntelligenceReport
    overlay: OverlayResult | None = None


class EstimateIntegrityEngine:
    """
    Main orchestrator for the Estimate Integrity Engine.

    Engines are built lazily; disabled engines contribute empty results so
    the aggregate report is always complete.
    """

    def __init__(
        self,
        enable_exposure: bool = True,
        enable_completeness: bool = True,
        enable_loss_expectation: bool = True,
        enable_code_upgrade: bool = True,
        enable_deviation: bool = True,
        settings: EngineSettings | None = None,
        baseline: CostBaseline | None = None,
        annotator: Annotator | None = None,
        metrics: MetricsSink | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            enable_exposure: Enable the exposure engine
            enable_completeness: Enable the completeness engine
            enable_loss_expectation: Enable the loss-expectation engine
            enable_code_upgrade: Enable the code-upgrade engine
            enable_deviation: Enable the deviation engine
            settings: Caller policy; defaults to ``EngineSettings()``
            baseline: Cost baseline; defaults to ``settings.baseline_path`` or the bundled table
            annotator: AI overlay annotator; implies the overlay is enabled
            metrics: Sink for stage timings and counts
        """
        self.enable_exposure = enable_exposure
        self.enable_completeness = enable_completeness
        self.enable_loss_expectation = enable_loss_expectation
        self.enable_code_upgrade = enable_code_upgrade
        self.enable_deviation = enable_deviation
        self.settings = settings or EngineSettings()
        self.annotator = annotator
        self.metrics = metrics or NullMetricsSink()

        self._baseline = baseline
        self._parser: EstimateParser | None = None
        self._exposure_engine: ExposureEngine | None = None
        self._completeness_engine: CompletenessEngine | None = None
        self._loss_engine: LossExpectationEngine | None = None
        self._code_engine: CodeUpgradeEngine | None = None
        self._deviation_engine: DeviationEngine | None = None

    @property
    def baseline(self) -> CostBaseline:
        """Get or load the cost baseline."""
        if self._baseline is None:
            if self.settings.baseline_path is not None:
                self._baseline = CostBaseline.from_json(self.settings.baseline_path)
            else:
                self._baseline = get_baseline()
        return self._baseline

    @property
    def parser(self) -> EstimateParser:
        """Get or create the estimate parser."""
        if self._parser is None:
            self._parser = EstimateParser(min_line_confidence=self.settings.min_line_confidence)
        return self._parser

    @property
    def exposure_engine(self) -> ExposureEngine:
        """Get or create the exposure engine."""
        if self._exposure_engine is None:
            self._exposure_engine = ExposureEngine(self.baseline, self.settings.heuristics)
        return self._exposure_engine

    @property
    def completeness_engine(self) -> CompletenessEngine:
        """Get or create the completeness engine."""
        if self._completeness_engine is None:
            self._completeness_engine = CompletenessEngine(self.settings.heuristics)
        return self._completeness_engine

    @property
    def loss_engine(self) -> LossExpectationEngine:
        """Get or create the loss-expectation engine."""
        if self._loss_engine is None:
            self._loss_engine = LossExpectationEngine()
        return self._loss_engine

    @property
    def code_engine(self) -> CodeUpgradeEngine:
        """Get or create the code-upgrade engine."""
        if self._code_engine is None:
            self._code_engine = CodeUpgradeEngine(self.baseline, self.settings.heuristics)
        return self._code_engine

    @property
    def deviation_engine(self) -> DeviationEngine:
        """Get or create the deviation engine."""
        if self._deviation_engine is None:
            self._deviation_engine = DeviationEngine(self.baseline, self.settings.heuristics)
        return self._deviation_engine

    def parse(self, text: str) -> StructuredEstimate:
        """
        Parse estimate text and apply the refusal policy.

        Raises:
            FormatDetectionError: If no column layout was found
            LowConfidenceError: If the validation score is below the configured minimum
        """
        with timed(self.metrics, "stage.duration", stage="parse"):
            estimate = self.parser.parse(text)
        self.metrics.increment("lines.parsed", estimate.parsed_count)
        self.metrics.increment("lines.rejected", estimate.rejected_count)

        if estimate.layout is None:
            self.metrics.increment("analysis.refused", reason="format")
            raise FormatDetectionError(
                estimate.warnings[0] if estimate.warnings else "Format detection failed",
                details={"scanned_lines": estimate.scanned_lines},
            )
        minimum = self.settings.min_validation_score
        if estimate.validation_score < minimum:
            self.metrics.increment("analysis.refused", reason="confidence")
            logger.warning(
                "Validation score %d below minimum %d", estimate.validation_score, minimum
            )
            raise LowConfidenceError(estimate.validation_score, minimum, estimate.warnings)
        return estimate

    def analyze(
        self,
        text: str,
        rooms: Iterable[Room | Mapping[str, Any]] | None = None,
        directives: DirectiveInput | None = None,
        scope_rule: ScopeRule | str | None = None,
        report_text: str | None = None,
    ) -> EstimateAnalysis:
        """
        Run a full analysis.

        Args:
            text: Raw estimate text
            rooms: Optional measured rooms
            directives: Optional structured expert-report directives
            scope_rule: Removal scope for the rooms; inferred from the loss when omitted
            report_text: Optional expert report text to extract directives from

        Returns:
            EstimateAnalysis bundling every engine output

        Raises:
            FormatDetectionError: If no column layout was found
            LowConfidenceError: If the parse scored below the configured minimum
            GeometryValidationError: If any room is invalid
        """
        estimate = self.parse(text)

        room_list = list(rooms) if rooms else []
        if room_list:
            errors = validate_rooms(room_list)
            if errors:
                self.metrics.increment("analysis.refused", reason="geometry")
                raise GeometryValidationError(errors)

        baseline = self.baseline.info
        with timed(self.metrics, "stage.duration", stage="rules"):
            exposure = (
                self.exposure_engine.analyze(estimate)
                if self.enable_exposure
                else ExposureAnalysis(baseline=baseline)
            )
            completeness = (
                self.completeness_engine.analyze(estimate)
                if self.enable_completeness
                else CompletenessAnalysis()
            )
            loss = (
                self.loss_engine.analyze(estimate)
                if self.enable_loss_expectation
                else LossExpectation(loss_type=LossType.OTHER, severity=LossSeverity.UNDETERMINED)
            )
            code = (
                self.code_engine.analyze(estimate)
                if self.enable_code_upgrade
                else CodeUpgradeAnalysis(baseline=baseline)
            )

        rule = None
        expected = None
        if room_list:
            rule = (
                ScopeRule(scope_rule)
                if scope_rule is not None
                else infer_scope_rule(loss.loss_type, loss.severity)
            )
            with timed(self.metrics, "stage.duration", stage="dimension"):
                expected = calculate_expected_quantities(room_list, rule)

        report = None
        if report_text:
            report = extract_directives(report_text)
            directives = report if directives is None else directives
        elif isinstance(directives, ParsedReport):
            report = directives

        deviation = None
        if self.enable_deviation and (directives is not None or expected is not None):
            with timed(self.metrics, "stage.duration", stage="deviation"):
                deviation = self.deviation_engine.analyze(estimate, directives, expected)

        engines = ["structural-parser"]
        engines += [
            name
            for name, enabled in (
                ("exposure-engine", self.enable_exposure),
                ("completeness-engine", self.enable_completeness),
                ("loss-expectation-engine", self.enable_loss_expectation),
                ("code-upgrade-engine", self.enable_code_upgrade),
            )
            if enabled
        ]
        if expected is not None:
            engines.append("dimension-engine")
        if report is not None:
            engines.append("report-directives")
        if deviation is not None:
            engines.append("deviation-engine")

        intelligence = generate_claim_intelligence(
            estimate,
            exposure,
            completeness,
            loss,
            code,
            deviation=deviation,
            expected=expected,
            report_supplied=directives is not None,
            engines=engines,
        )
        self.metrics.increment("analysis.completed", risk_tier=intelligence.risk_tier.value)

        overlay = None
        if self.annotator is not None or self.settings.ai_overlay_enabled:
            overlay = run_overlay(
                intelligence,
                self._resolve_annotator(),
                timeout_seconds=self.settings.ai_timeout_seconds,
                metrics=self.metrics,
            )

        logger.info(
            "Analysis complete: %d item(s), risk score %d (%s)",
            len(estimate.line_items),
            intelligence.consolidated_risk_score,
            intelligence.risk_tier.value,
        )
        return EstimateAnalysis(
            estimate=estimate,
            exposure=exposure,
            completeness=completeness,
            loss_expectation=loss,
            code_upgrades=code,
            scope_rule=rule,
            expected_quantities=expected,
            report=report,
            deviations=deviation,
            intelligence=intelligence,
            overlay=overlay,
        )

    def _resolve_annotator(self) -> Annotator | None:
        if self.annotator is None:
            try:
                self.annotator = GeminiAnnotator.from_settings(self.settings)
            except OverlayError as e:
                logger.warning("AI overlay unavailable: %s", e.message)
                return None
        return self.annotator

    def get_enabled_engines(self) -> list[str]:
        """Get list of enabled engines."""
        engines = []
        if self.enable_exposure:
            engines.append("Exposure")
        if self.enable_completeness:
            engines.append("Completeness")
        if self.enable_loss_expectation:
            engines.append("Loss Expectation")
        if self.enable_code_upgrade:
            engines.append("Code Upgrade")
        if self.enable_deviation:
            engines.append("Deviation")
        return engines

    def configure(
        self,
        enable_exposure: bool | None = None,
        enable_completeness: bool | None = None,
        enable_loss_expectation: bool | None = None,
        enable_code_upgrade: bool | None = None,
        enable_deviation: bool | None = None,
        min_validation_score: int | None = None,
    ) -> "EstimateIntegrityEngine":
        """
        Configure the engine settings.

        Returns:
            Self for method chaining
        """
        if enable_exposure is not None:
            self.enable_exposure = enable_exposure
        if enable_completeness is not None:
            self.enable_completeness = enable_completeness
        if enable_loss_expectation is not None:
            self.enable_loss_expectation = enable_loss_expectation
        if enable_code_upgrade is not None:
            self.enable_code_upgrade = enable_code_upgrade
        if enable_deviation is not None:
            self.enable_deviation = enable_deviation
        if min_validation_score is not None:
            self.settings = self.settings.model_copy(
                update={"min_validation_score": min_validation_score}
            )
        return self


# Convenience function for quick analyses
def analyze_estimate(
    text: str,
    rooms: Iterable[Room | Mapping[str, Any]] | None = None,
    directives: DirectiveInput | None = None,
    scope_rule: ScopeRule | str | None = None,
    settings: EngineSettings | None = None,
) -> EstimateAnalysis:
    """
    Convenience function for a one-off analysis.

    Returns:
        EstimateAnalysis bundling every engine output
    """
    engine = EstimateIntegrityEngine(settings=settings)
    return engine.analyze(text, rooms=rooms, directives=directives, scope_rule=scope_rule)
