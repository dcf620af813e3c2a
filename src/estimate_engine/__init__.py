"""
Estimate Integrity Engine.

Deterministic structural analysis of insurance repair estimates: layout
detection and parsing, missing-scope exposure, trade completeness, loss
expectation, code-upgrade risk and expected-versus-scoped deviations.
"""

from .config import EngineSettings, Heuristics
from .core.findings import (
    ClaimIntelligenceReport,
    CodeUpgradeAnalysis,
    CompletenessAnalysis,
    DeviationAnalysis,
    ExposureAnalysis,
    LossExpectation,
    ParsedReport,
    ReportDirective,
    RiskTier,
)
from .core.models import (
    ConfidenceLabel,
    EstimateFormat,
    ExpectedQuantities,
    LineItem,
    Room,
    ScopeRule,
    Severity,
    StructuredEstimate,
)
from .core.structural_parser import parse_estimate
from .engine import EstimateAnalysis, EstimateIntegrityEngine, analyze_estimate
from .exceptions import (
    CostBaselineError,
    EstimateEngineError,
    FormatDetectionError,
    GeometryValidationError,
    LowConfidenceError,
)
from .reporting.scorecard import ReportFormatter

__version__ = "0.1.0"

__all__ = [
    # Main Engine
    "EstimateAnalysis",
    "EstimateIntegrityEngine",
    "analyze_estimate",
    "parse_estimate",
    # Configuration
    "EngineSettings",
    "Heuristics",
    # Models
    "ConfidenceLabel",
    "EstimateFormat",
    "ExpectedQuantities",
    "LineItem",
    "Room",
    "ScopeRule",
    "Severity",
    "StructuredEstimate",
    # Results
    "ClaimIntelligenceReport",
    "CodeUpgradeAnalysis",
    "CompletenessAnalysis",
    "DeviationAnalysis",
    "ExposureAnalysis",
    "LossExpectation",
    "ParsedReport",
    "ReportDirective",
    "RiskTier",
    # Errors
    "CostBaselineError",
    "EstimateEngineError",
    "FormatDetectionError",
    "GeometryValidationError",
    "LowConfidenceError",
    # Reporting
    "ReportFormatter",
]
