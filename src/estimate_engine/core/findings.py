"""
Result models produced by the analysis engines.
Every result is independently serializable with ``model_dump``.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .models import BaselineInfo, CostRange, FindingConfidence, ScopeRule, Severity


class _ImpactRange(BaseModel):
    """Mixin validating a non-negative, ordered impact range."""

    impact_min: Decimal = Decimal("0.00")
    impact_max: Decimal = Decimal("0.00")

    @model_validator(mode="after")
    def _ordered_impact(self):
        if self.impact_min < 0:
            raise ValueError(f"impact_min {self.impact_min} is negative")
        if self.impact_min > self.impact_max:
            raise ValueError(f"impact_min {self.impact_min} exceeds impact_max {self.impact_max}")
        return self

    @property
    def impact_avg(self) -> Decimal:
        return (self.impact_min + self.impact_max) / 2


# -- Exposure -----------------------------------------------------------------


class ExposureItem(_ImpactRange):
    """One missing-scope exposure backed by parsed quantities."""

    rule_id: str
    category: str
    trade_code: str
    trade_name: str
    description: str
    quantity: float
    unit: str
    cost_key: str
    unit_cost: CostRange
    severity: Severity
    confidence: FindingConfidence
    calculation: str
    related_lines: list[int] = Field(default_factory=list)


class ExposureAnalysis(BaseModel):
    items: list[ExposureItem] = Field(default_factory=list)
    total_min: Decimal = Decimal("0.00")
    total_max: Decimal = Decimal("0.00")
    percent_of_estimate: float = 0.0
    critical_count: int = 0
    high_count: int = 0
    risk_score: int = Field(default=0, ge=0, le=100)
    summary: str = ""
    baseline: BaselineInfo


# -- Completeness -------------------------------------------------------------


class IssueType(str, Enum):
    ZERO_QUANTITY = "ZERO_QUANTITY"
    MISSING_REPLACEMENT = "MISSING_REPLACEMENT"
    QUANTITY_MISMATCH = "QUANTITY_MISMATCH"
    MISSING_FINISH = "MISSING_FINISH"


class TradeIssue(BaseModel):
    issue_type: IssueType
    severity: Severity
    message: str
    penalty: int = Field(ge=0)
    line_numbers: list[int] = Field(default_factory=list)


class TradeScore(BaseModel):
    """Per-trade completeness score."""

    trade_code: str
    trade_name: str
    score: int = Field(default=100, ge=0, le=100)
    issues: list[TradeIssue] = Field(default_factory=list)
    has_removal: bool = False
    has_replacement: bool = False
    has_finish: bool | None = None
    quantity_consistent: bool = True
    removal_quantity: float = 0.0
    replacement_quantity: float = 0.0

    def add_issue(self, issue: TradeIssue) -> None:
        """Append an issue and apply its penalty, flooring the score at 0."""
        self.issues.append(issue)
        self.score = max(0, self.score - issue.penalty)

    def count(self, severity: Severity) -> int:
        return sum(1 for issue in self.issues if issue.severity == severity)


class CompletenessAnalysis(BaseModel):
    trade_scores: list[TradeScore] = Field(default_factory=list)
    structural_integrity_score: int = Field(default=100, ge=0, le=100)
    critical_issues: int = 0
    high_issues: int = 0
    moderate_issues: int = 0
    summary: str = ""


# -- Loss expectation ---------------------------------------------------------


class LossType(str, Enum):
    WATER = "WATER"
    FIRE = "FIRE"
    WIND = "WIND"
    OTHER = "OTHER"


class LossSeverity(str, Enum):
    LEVEL_1 = "LEVEL_1"
    LEVEL_2 = "LEVEL_2"
    CATEGORY_3 = "CATEGORY_3"
    LIGHT = "LIGHT"
    MODERATE = "MODERATE"
    HEAVY = "HEAVY"
    MINOR = "MINOR"
    MAJOR = "MAJOR"
    UNDETERMINED = "UNDETERMINED"


class ExpectedTrade(BaseModel):
    trade_code: str
    trade_name: str
    probability: float = Field(ge=0, le=1)
    reason: str = ""
    present: bool = False


class LossExpectation(BaseModel):
    loss_type: LossType
    severity: LossSeverity
    expected_trades: list[ExpectedTrade] = Field(default_factory=list)
    missing_critical_trades: list[ExpectedTrade] = Field(default_factory=list)
    probability_score: int = Field(default=100, ge=0, le=100)
    confidence: FindingConfidence = FindingConfidence.LOW
    inference: dict[str, Any] = Field(default_factory=dict)
    summary: str = ""


# -- Code upgrades ------------------------------------------------------------


class QuantityBasis(str, Enum):
    """Whether a quantity comes from parsed quantities or a fixed assumption."""

    MEASURED = "MEASURED"
    ASSUMED = "ASSUMED"


class CodeUpgradeRisk(_ImpactRange):
    rule_id: str
    code_item: str
    trade_code: str
    requirement: str
    description: str
    quantity: float
    unit: str
    quantity_basis: QuantityBasis
    cost_key: str
    severity: Severity
    calculation: str


class CodeUpgradeAnalysis(BaseModel):
    risks: list[CodeUpgradeRisk] = Field(default_factory=list)
    total_min: Decimal = Decimal("0.00")
    total_max: Decimal = Decimal("0.00")
    critical_count: int = 0
    notes: list[str] = Field(default_factory=list)
    summary: str = ""
    baseline: BaselineInfo


# -- Report directives --------------------------------------------------------


class DirectiveType(str, Enum):
    REMOVE = "REMOVE"
    REPLACE = "REPLACE"
    INSTALL = "INSTALL"
    TREAT = "TREAT"
    TEST = "TEST"
    MONITOR = "MONITOR"


class ReportType(str, Enum):
    ENGINEERING = "ENGINEERING"
    HYGIENIST = "HYGIENIST"
    ENVIRONMENTAL = "ENVIRONMENTAL"
    STRUCTURAL = "STRUCTURAL"
    MOLD = "MOLD"
    OTHER = "OTHER"


class ReportDirective(BaseModel):
    """One instruction from an expert report, as structured input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    trade: str
    trade_name: str = ""
    directive_type: DirectiveType
    quantity_rule: ScopeRule | None = None
    priority: Severity = Severity.LOW
    measurable: bool = True
    source_text: str = ""
    specific_quantity: float | None = None
    specific_unit: str | None = None


class ParsedReport(BaseModel):
    report_type: ReportType = ReportType.OTHER
    directives: list[ReportDirective] = Field(default_factory=list)
    measurable_count: int = 0
    confidence: float = Field(default=0.0, ge=0, le=1)
    summary: str = ""
    warnings: list[str] = Field(default_factory=list)


# -- Deviations ---------------------------------------------------------------


class DeviationType(str, Enum):
    MISSING_REQUIRED_TRADE = "MISSING_REQUIRED_TRADE"
    UNDER_SCOPED_REMOVAL = "UNDER_SCOPED_REMOVAL"
    INSUFFICIENT_CUT_HEIGHT = "INSUFFICIENT_CUT_HEIGHT"
    DIMENSION_MISMATCH = "DIMENSION_MISMATCH"
    QUANTITY_SHORTFALL = "QUANTITY_SHORTFALL"


class DeviationSource(str, Enum):
    REPORT = "REPORT"
    DIMENSION = "DIMENSION"
    BOTH = "BOTH"


class Deviation(_ImpactRange):
    """One quantified mismatch between scoped and required quantities."""

    deviation_type: DeviationType
    trade_code: str
    trade_name: str
    issue: str
    estimate_value: float
    expected_value: float
    unit: str
    severity: Severity
    source: DeviationSource
    calculation: str


class DeviationAnalysis(BaseModel):
    deviations: list[Deviation] = Field(default_factory=list)
    total_min: Decimal = Decimal("0.00")
    total_max: Decimal = Decimal("0.00")
    critical_count: int = 0
    high_count: int = 0
    directives_checked: int = 0
    dimension_comparisons: int = 0
    summary: str = ""
    baseline: BaselineInfo


# -- Aggregate report ---------------------------------------------------------


class RiskTier(str, Enum):
    HIGH = "HIGH"
    MODERATE = "MODERATE"
    LOW = "LOW"


class ClaimIntelligenceReport(BaseModel):
    """Joined view of every engine with the consolidated risk score."""

    structural_integrity_score: int
    exposure_min: Decimal
    exposure_max: Decimal
    deviation_exposure_min: Decimal | None = None
    deviation_exposure_max: Decimal | None = None
    code_upgrade_min: Decimal
    code_upgrade_max: Decimal
    code_upgrade_flags: int = 0
    report_deviations: int = 0
    dimension_variances: int = 0
    critical_completeness_issues: int = 0
    critical_deviations: int = 0
    critical_code_risks: int = 0
    consolidated_risk_score: int = Field(ge=0, le=100)
    risk_tier: RiskTier
    executive_summary: str
    total_rcv: Decimal
    total_acv: Decimal
    total_exposure_min: Decimal
    total_exposure_max: Decimal
    line_item_count: int
    engines_used: list[str] = Field(default_factory=list)
    analysis_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    baseline: BaselineInfo
