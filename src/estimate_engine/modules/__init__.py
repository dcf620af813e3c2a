"""
Analysis engines for the Estimate Integrity Engine.
"""

from .code_upgrade import CodeUpgradeEngine, analyze_code_upgrades
from .completeness import CompletenessEngine, calculate_completeness
from .deviation import DeviationEngine, calculate_deviations
from .dimension import calculate_expected_quantities, infer_scope_rule, validate_rooms
from .exposure import ExposureEngine, calculate_exposure
from .loss_expectation import LossExpectationEngine, calculate_loss_expectation
from .report_directives import extract_directives

__all__ = [
    "CodeUpgradeEngine",
    "CompletenessEngine",
    "DeviationEngine",
    "ExposureEngine",
    "LossExpectationEngine",
    "analyze_code_upgrades",
    "calculate_completeness",
    "calculate_deviations",
    "calculate_expected_quantities",
    "calculate_exposure",
    "calculate_loss_expectation",
    "extract_directives",
    "infer_scope_rule",
    "validate_rooms",
]
