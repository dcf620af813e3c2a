"""
Exposure Engine.
Prices missing scope from the quantities actually parsed from the estimate.
"""

import logging
import math
from decimal import Decimal
from typing import Any

from ..config import DEFAULT_HEURISTICS, Heuristics
from ..core.cost_baseline import CostBaseline, get_baseline
from ..core.findings import ExposureAnalysis, ExposureItem
from ..core.models import (
    FindingConfidence,
    LineItem,
    Severity,
    StructuredEstimate,
    fmt_money,
    fmt_qty,
    round_half_up,
    to_cents,
)
from ..core.rule_engine import EstimateRule, RuleEngine
from ..core.trades import TRADE_CODES

logger = logging.getLogger(__name__)

FLOORING_TRADES = ("FLR", "CRP", "VCT")
DETACH_FLOORING_TRADES = ("FLR", "CRP", "VCT", "TIL")

# Trades whose removal work has no rebuild counterpart.
NON_REBUILD_TRADES = frozenset({"DEM", "HAU", "MIT", "CLN", "EQP", "DET", "TMP", "PRO", "UNK"})


def exposure_severity(impact_min: Decimal, impact_max: Decimal, total_rcv: Decimal) -> Severity:
    """Grade an exposure by its average dollar value and share of total RCV."""
    avg = (impact_min + impact_max) / 2
    pct = (avg / total_rcv * 100) if total_rcv > 0 else Decimal("0")
    if avg > 5000 or pct > 20:
        return Severity.CRITICAL
    if avg > 2000 or pct > 10:
        return Severity.HIGH
    if avg > 1000 or pct > 5:
        return Severity.MODERATE
    if avg > 500 or pct > 2:
        return Severity.LOW
    return Severity.MINIMAL


def _sum_quantity(items: list[LineItem], unit: str) -> float:
    return sum(item.quantity for item in items if item.unit == unit)


class ExposureEngine:
    """
    Five independent missing-scope checks, each priced against the cost baseline.
    """

    def __init__(
        self,
        baseline: CostBaseline | None = None,
        heuristics: Heuristics | None = None,
        rule_engine: RuleEngine[ExposureItem] | None = None,
    ) -> None:
        self.baseline = baseline or get_baseline()
        self.heuristics = heuristics or DEFAULT_HEURISTICS
        self.engine: RuleEngine[ExposureItem] = rule_engine or RuleEngine()
        self._register_rules()

    def _register_rules(self) -> None:
        """Register all exposure rules."""
        self.engine.add_rule(
            EstimateRule(
                rule_id="EXP-001",
                name="Missing Paint",
                description="Drywall replace/install present with no painting trade",
                check=self._check_missing_paint,
            )
        )
        self.engine.add_rule(
            EstimateRule(
                rule_id="EXP-002",
                name="Missing Insulation",
                description="Drywall removal present with no insulation trade",
                check=self._check_missing_insulation,
            )
        )
        self.engine.add_rule(
            EstimateRule(
                rule_id="EXP-003",
                name="Removal Without Replacement",
                description="Trade has removal items but no replace/install items",
                check=self._check_removal_without_replacement,
            )
        )
        self.engine.add_rule(
            EstimateRule(
                rule_id="EXP-004",
                name="Missing Trim",
                description="Flooring replace/install present with no molding/trim trade",
                check=self._check_missing_trim,
            )
        )
        self.engine.add_rule(
            EstimateRule(
                rule_id="EXP-005",
                name="Missing Detach/Reset",
                description="Flooring or cabinet work around plumbing fixtures with no detach/reset",
                check=self._check_missing_detach_reset,
            )
        )

    def analyze(self, estimate: StructuredEstimate) -> ExposureAnalysis:
        """
        Run every enabled exposure rule.

        Args:
            estimate: Parsed estimate

        Returns:
            ExposureAnalysis with totals, severity counts and risk score
        """
        items = self.engine.execute_all(estimate, {"total_rcv": estimate.totals.rcv})

        total_min = to_cents(sum((i.impact_min for i in items), Decimal("0")))
        total_max = to_cents(sum((i.impact_max for i in items), Decimal("0")))
        rcv = estimate.totals.rcv
        pct = float((total_min + total_max) / 2 / rcv * 100) if rcv > 0 else 0.0
        critical = sum(1 for i in items if i.severity == Severity.CRITICAL)
        high = sum(1 for i in items if i.severity == Severity.HIGH)
        risk_score = min(100, round_half_up(pct + 20 * critical + 10 * high + 5 * len(items)))

        if not items:
            summary = "No significant scope gaps detected based on structural analysis."
        else:
            summary = (
                f"Identified {len(items)} scope gap(s) with estimated exposure range of "
                f"{fmt_money(total_min)} - {fmt_money(total_max)}."
            )
            if critical:
                summary += f" {critical} critical item(s) identified."
            if high:
                summary += f" {high} high-priority item(s) identified."

        logger.info("Exposure analysis: %d item(s), risk score %d", len(items), risk_score)
        return ExposureAnalysis(
            items=items,
            total_min=total_min,
            total_max=total_max,
            percent_of_estimate=round(pct, 2),
            critical_count=critical,
            high_count=high,
            risk_score=risk_score,
            summary=summary,
            baseline=self.baseline.info,
        )

    def _priced_item(
        self,
        *,
        rule_id: str,
        category: str,
        trade_code: str,
        description: str,
        quantity: float,
        unit: str,
        cost_key: str,
        confidence: FindingConfidence,
        context: dict[str, Any],
        related: list[LineItem],
        trace_prefix: str | None = None,
    ) -> ExposureItem | None:
        priced = self.baseline.exposure(cost_key, quantity, unit)
        if priced is None:
            return None
        impact_min, impact_max = priced
        cost = self.baseline.get(cost_key)
        quantity_text = trace_prefix or f"{fmt_qty(quantity)} {unit}"
        return ExposureItem(
            rule_id=rule_id,
            category=category,
            trade_code=trade_code,
            trade_name=TRADE_CODES.get(trade_code, trade_code),
            description=description,
            quantity=quantity,
            unit=unit,
            cost_key=cost_key,
            unit_cost=cost,
            impact_min=impact_min,
            impact_max=impact_max,
            severity=exposure_severity(impact_min, impact_max, context["total_rcv"]),
            confidence=confidence,
            calculation=(
                f"{quantity_text} × {fmt_money(cost.min)}-{fmt_money(cost.max)}/{unit} "
                f"= {fmt_money(impact_min)}-{fmt_money(impact_max)}"
            ),
            related_lines=[item.line_number for item in related],
        )

    def _check_missing_paint(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[ExposureItem]:
        """Drywall rebuild without any painting trade."""
        drywall = [item for item in estimate.items_for("DRY") if item.is_rebuild]
        if not drywall or estimate.has_trade("PNT"):
            return []
        quantity = _sum_quantity(drywall, "SF")
        if quantity <= 0:
            return []
        item = self._priced_item(
            rule_id="EXP-001",
            category="MISSING_PAINT",
            trade_code="PNT",
            description="Drywall replacement/installation present without corresponding paint",
            quantity=quantity,
            unit="SF",
            cost_key="PNT_INTERIOR_WALL",
            confidence=FindingConfidence.HIGH,
            context=context,
            related=drywall,
        )
        return [item] if item else []

    def _check_missing_insulation(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[ExposureItem]:
        """Drywall removal without any insulation trade."""
        removed = [item for item in estimate.items_for("DRY") if item.is_removal]
        if not removed or estimate.has_trade("INS"):
            return []
        quantity = _sum_quantity(removed, "SF")
        if quantity <= 0:
            return []
        item = self._priced_item(
            rule_id="EXP-002",
            category="MISSING_INSULATION",
            trade_code="INS",
            description="Drywall removal present without insulation replacement",
            quantity=quantity,
            unit="SF",
            cost_key="INS_BATT_R13",
            confidence=FindingConfidence.MEDIUM,
            context=context,
            related=removed,
        )
        return [item] if item else []

    def _check_removal_without_replacement(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[ExposureItem]:
        """Per trade: removal items with no rebuild, priced as a multiple of removal RCV."""
        low = Decimal(str(self.heuristics.rebuild_multiplier_min))
        high = Decimal(str(self.heuristics.rebuild_multiplier_max))
        groups: dict[str, list[LineItem]] = {}
        for item in estimate.line_items:
            groups.setdefault(item.trade_code, []).append(item)

        results: list[ExposureItem] = []
        for trade_code, items in groups.items():
            if trade_code in NON_REBUILD_TRADES:
                continue
            removals = [item for item in items if item.is_removal]
            if not removals or any(item.is_rebuild for item in items):
                continue

            removal_rcv = sum((item.rcv for item in removals), Decimal("0"))
            impact_min, impact_max = to_cents(removal_rcv * low), to_cents(removal_rcv * high)
            trade_name = TRADE_CODES.get(trade_code, trade_code)
            results.append(
                ExposureItem(
                    rule_id="EXP-003",
                    category="REMOVAL_WITHOUT_REPLACEMENT",
                    trade_code=trade_code,
                    trade_name=trade_name,
                    description=f"{trade_name} removal present without replacement",
                    quantity=sum(item.quantity for item in removals),
                    unit=removals[0].unit,
                    cost_key="REBUILD_MULTIPLIER",
                    unit_cost={
                        "min": low,
                        "max": high,
                        "unit": "x removal RCV",
                        "description": "Rebuild-cost heuristic",
                    },
                    impact_min=impact_min,
                    impact_max=impact_max,
                    severity=exposure_severity(impact_min, impact_max, context["total_rcv"]),
                    confidence=FindingConfidence.MEDIUM,
                    calculation=(
                        f"Removal cost {fmt_money(removal_rcv)} × {fmt_qty(low)}-{fmt_qty(high)}x "
                        f"multiplier = {fmt_money(impact_min)}-{fmt_money(impact_max)}"
                    ),
                    related_lines=[item.line_number for item in removals],
                )
            )
        return results

    def _check_missing_trim(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[ExposureItem]:
        """Flooring rebuild without molding, perimeter inferred from floor area."""
        flooring = [item for item in estimate.items_for(*FLOORING_TRADES) if item.is_rebuild]
        if not flooring or estimate.has_trade("MLD"):
            return []
        floor_sf = _sum_quantity(flooring, "SF")
        if floor_sf <= 0:
            return []
        perimeter = round(math.sqrt(floor_sf) * self.heuristics.perimeter_factor, 1)
        item = self._priced_item(
            rule_id="EXP-004",
            category="MISSING_TRIM",
            trade_code="MLD",
            description="Flooring replacement present without baseboard/trim",
            quantity=perimeter,
            unit="LF",
            cost_key="MLD_BASEBOARD",
            confidence=FindingConfidence.MEDIUM,
            context=context,
            related=flooring,
            trace_prefix=(
                f"√{fmt_qty(floor_sf)} SF × {fmt_qty(self.heuristics.perimeter_factor)} "
                f"= {fmt_qty(perimeter)} LF"
            ),
        )
        return [item] if item else []

    def _check_missing_detach_reset(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[ExposureItem]:
        """Flooring or cabinet work around plumbing fixtures with no detach/reset line."""
        fixtures = [
            item for item in estimate.items_for("PLM") if "fixture" in item.description.lower()
        ]
        if not fixtures:
            return []
        if not (estimate.has_trade(*DETACH_FLOORING_TRADES) or estimate.has_trade("CAB")):
            return []
        has_detach = any(
            item.trade_code == "DET"
            or "detach" in item.description.lower()
            or "reset" in item.description.lower()
            for item in estimate.line_items
        )
        if has_detach:
            return []

        count = self.heuristics.assumed_detach_reset_fixtures
        item = self._priced_item(
            rule_id="EXP-005",
            category="MISSING_DETACH_RESET",
            trade_code="DET",
            description=(
                "Flooring or cabinet work with plumbing fixtures requires detach/reset labor "
                f"(assumes {count} fixtures)"
            ),
            quantity=float(count),
            unit="EA",
            cost_key="PLM_DETACH_RESET",
            confidence=FindingConfidence.MEDIUM,
            context=context,
            related=fixtures,
            trace_prefix=f"{count} fixtures (assumed)",
        )
        return [item] if item else []


def calculate_exposure(
    estimate: StructuredEstimate,
    baseline: CostBaseline | None = None,
    heuristics: Heuristics | None = None,
) -> ExposureAnalysis:
    """Convenience wrapper for a one-off exposure analysis."""
    return ExposureEngine(baseline=baseline, heuristics=heuristics).analyze(estimate)
