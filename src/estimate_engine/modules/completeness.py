"""
Completeness Engine.
Scores each trade 0-100 on scope consistency using the parsed quantities.
"""

import logging
from types import MappingProxyType

from ..config import DEFAULT_HEURISTICS, Heuristics
from ..core.findings import CompletenessAnalysis, IssueType, TradeIssue, TradeScore
from ..core.models import LineItem, Severity, StructuredEstimate, fmt_qty, round_half_up
from ..core.trades import TRADE_CODES
from .exposure import NON_REBUILD_TRADES

logger = logging.getLogger(__name__)

# trade -> (finish trade, finish name)
REQUIRED_FINISH = MappingProxyType(
    {
        "DRY": ("PNT", "Painting"),
        "FRM": ("DRY", "Drywall"),
        "FLR": ("MLD", "Baseboard"),
        "CRP": ("MLD", "Baseboard"),
        "VCT": ("MLD", "Baseboard"),
        "TIL": ("MLD", "Baseboard"),
        "CAB": ("CTR", "Countertops"),
    }
)

ZERO_QUANTITY_PENALTY = 20
MISSING_REPLACEMENT_PENALTY = 40
QUANTITY_MISMATCH_PENALTY = 15
MISSING_FINISH_PENALTY = 25


class CompletenessEngine:
    """Per-trade completeness scoring with fixed penalties."""

    def __init__(self, heuristics: Heuristics | None = None) -> None:
        self.heuristics = heuristics or DEFAULT_HEURISTICS

    def score_trade(
        self, trade_code: str, items: list[LineItem], present_trades: set[str]
    ) -> TradeScore:
        """Score one trade group against the rest of the estimate."""
        trade_name = TRADE_CODES.get(trade_code, trade_code)
        removals = [item for item in items if item.is_removal]
        rebuilds = [item for item in items if item.is_rebuild]
        removal_qty = sum(item.quantity for item in removals)
        rebuild_qty = sum(item.quantity for item in rebuilds)

        result = TradeScore(
            trade_code=trade_code,
            trade_name=trade_name,
            has_removal=bool(removals),
            has_replacement=bool(rebuilds),
            removal_quantity=round(removal_qty, 2),
            replacement_quantity=round(rebuild_qty, 2),
        )

        for item in items:
            if item.quantity == 0:
                result.add_issue(
                    TradeIssue(
                        issue_type=IssueType.ZERO_QUANTITY,
                        severity=Severity.CRITICAL,
                        message=f"Zero quantity for: {item.description}",
                        penalty=ZERO_QUANTITY_PENALTY,
                        line_numbers=[item.line_number],
                    )
                )

        if removals and not rebuilds and trade_code not in NON_REBUILD_TRADES:
            result.add_issue(
                TradeIssue(
                    issue_type=IssueType.MISSING_REPLACEMENT,
                    severity=Severity.CRITICAL,
                    message=(
                        f"{trade_name} removal present without replacement "
                        f"({fmt_qty(removal_qty)} {removals[0].unit} removed)"
                    ),
                    penalty=MISSING_REPLACEMENT_PENALTY,
                    line_numbers=[item.line_number for item in removals],
                )
            )

        if removals and rebuilds and removal_qty > 0 and rebuild_qty > 0:
            divergence = abs(removal_qty - rebuild_qty) / removal_qty
            if divergence > self.heuristics.quantity_divergence:
                result.quantity_consistent = False
                result.add_issue(
                    TradeIssue(
                        issue_type=IssueType.QUANTITY_MISMATCH,
                        severity=Severity.MODERATE,
                        message=(
                            f"Removal quantity ({fmt_qty(removal_qty)} {removals[0].unit}) "
                            f"does not match replacement quantity "
                            f"({fmt_qty(rebuild_qty)} {rebuilds[0].unit})"
                        ),
                        penalty=QUANTITY_MISMATCH_PENALTY,
                        line_numbers=[item.line_number for item in removals + rebuilds],
                    )
                )

        finish = REQUIRED_FINISH.get(trade_code)
        if finish is not None and rebuilds:
            finish_trade, finish_name = finish
            result.has_finish = finish_trade in present_trades
            if not result.has_finish:
                result.add_issue(
                    TradeIssue(
                        issue_type=IssueType.MISSING_FINISH,
                        severity=Severity.HIGH,
                        message=f"{trade_name} replacement present without {finish_name}",
                        penalty=MISSING_FINISH_PENALTY,
                        line_numbers=[item.line_number for item in rebuilds],
                    )
                )

        return result

    def analyze(self, estimate: StructuredEstimate) -> CompletenessAnalysis:
        groups: dict[str, list[LineItem]] = {}
        for item in estimate.line_items:
            groups.setdefault(item.trade_code, []).append(item)

        present = estimate.trade_codes
        scores = [self.score_trade(code, items, present) for code, items in groups.items()]

        critical = sum(score.count(Severity.CRITICAL) for score in scores)
        high = sum(score.count(Severity.HIGH) for score in scores)
        moderate = sum(score.count(Severity.MODERATE) for score in scores)

        if scores:
            mean = sum(score.score for score in scores) / len(scores)
            integrity = max(0, round_half_up(mean - 5 * critical - 2 * high))
        else:
            integrity = 100

        summary = self._summary(integrity, scores, critical, high)
        logger.info(
            "Completeness analysis: %d trade(s), integrity %d", len(scores), integrity
        )
        return CompletenessAnalysis(
            trade_scores=scores,
            structural_integrity_score=integrity,
            critical_issues=critical,
            high_issues=high,
            moderate_issues=moderate,
            summary=summary,
        )

    @staticmethod
    def _summary(integrity: int, scores: list[TradeScore], critical: int, high: int) -> str:
        if integrity >= 90:
            parts = [f"Estimate shows high structural integrity ({integrity}/100)."]
        elif integrity >= 75:
            parts = [f"Estimate shows good structural integrity ({integrity}/100) with minor gaps."]
        elif integrity >= 60:
            parts = [
                f"Estimate shows moderate structural integrity ({integrity}/100) with notable gaps."
            ]
        else:
            parts = [
                f"Estimate shows low structural integrity ({integrity}/100) with significant gaps."
            ]
        if critical:
            parts.append(f"{critical} critical issue(s) identified.")
        if high:
            parts.append(f"{high} high-priority issue(s) identified.")
        with_issues = sum(1 for score in scores if score.issues)
        if with_issues:
            parts.append(f"{with_issues} of {len(scores)} trades have completeness issues.")
        else:
            parts.append("All trades appear structurally complete.")
        return " ".join(parts)


def calculate_completeness(
    estimate: StructuredEstimate, heuristics: Heuristics | None = None
) -> CompletenessAnalysis:
    """Convenience wrapper for a one-off completeness analysis."""
    return CompletenessEngine(heuristics).analyze(estimate)
