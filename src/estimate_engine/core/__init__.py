"""
Core components for the Estimate Integrity Engine.
"""

from .cost_baseline import CostBaseline, get_baseline
from .format_detector import FormatDetector, detect_format, get_detector
from .models import (
    ActionType,
    BaselineInfo,
    ColumnBoundary,
    ColumnLayout,
    ConfidenceLabel,
    CostRange,
    EstimateFormat,
    EstimateTotals,
    ExpectedQuantities,
    LineItem,
    Room,
    RoomQuantities,
    ScopeRule,
    SeparatorKind,
    Severity,
    StructuredEstimate,
)
from .normalizer import normalize_text
from .rule_engine import EstimateRule, RuleEngine
from .structural_parser import EstimateParser, get_parser, parse_estimate
from .trades import TRADE_CODES, TradeClassifier, get_classifier, normalize_unit

__all__ = [
    # Models
    "ActionType",
    "BaselineInfo",
    "ColumnBoundary",
    "ColumnLayout",
    "ConfidenceLabel",
    "CostRange",
    "EstimateFormat",
    "EstimateTotals",
    "ExpectedQuantities",
    "LineItem",
    "Room",
    "RoomQuantities",
    "ScopeRule",
    "SeparatorKind",
    "Severity",
    "StructuredEstimate",
    # Parsing
    "EstimateParser",
    "FormatDetector",
    "detect_format",
    "get_detector",
    "get_parser",
    "normalize_text",
    "parse_estimate",
    # Trade Dictionary
    "TRADE_CODES",
    "TradeClassifier",
    "get_classifier",
    "normalize_unit",
    # Cost Baseline
    "CostBaseline",
    "get_baseline",
    # Rule Engine
    "EstimateRule",
    "RuleEngine",
]
