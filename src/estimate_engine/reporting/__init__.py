"""
Reporting components for the Estimate Integrity Engine.
"""

from .intelligence import consolidated_risk_score, generate_claim_intelligence, risk_tier
from .scorecard import ReportFormatter
from .tables import line_items_frame, trade_summary_frame

__all__ = [
    "ReportFormatter",
    "consolidated_risk_score",
    "generate_claim_intelligence",
    "line_items_frame",
    "risk_tier",
    "trade_summary_frame",
]
