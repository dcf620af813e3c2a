"""
Deviation Engine.
Compares scoped estimate quantities with expert-report directives and with
quantities derived from room geometry.

Every deviation carries the literal arithmetic behind its impact range.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal
from types import MappingProxyType
from typing import Any, NamedTuple

from ..config import DEFAULT_HEURISTICS, Heuristics
from ..core.cost_baseline import CostBaseline, get_baseline
from ..core.findings import (
    Deviation,
    DeviationAnalysis,
    DeviationSource,
    DeviationType,
    DirectiveType,
    ParsedReport,
    ReportDirective,
)
from ..core.models import (
    ActionType,
    ExpectedQuantities,
    LineItem,
    ScopeRule,
    Severity,
    StructuredEstimate,
    fmt_money,
    fmt_qty,
    to_cents,
)
from ..core.trades import TRADE_CODES
from .dimension import CUT_HEIGHTS

logger = logging.getLogger(__name__)

FLOORING_TRADES = ("FLR", "CRP", "VCT", "TIL", "WDP")
DRYWALL_REPLACE_KEY = "DRY_REPLACE_1/2"
GEOMETRY_REQUIRED = "room geometry required to quantify"


class _TradeGeometry(NamedTuple):
    attribute: str
    unit: str
    install_key: str
    removal_key: str | None = None


# trade -> expected-quantity attribute and baseline keys
TRADE_GEOMETRY = MappingProxyType(
    {
        "DRY": _TradeGeometry("drywall_sf", "SF", DRYWALL_REPLACE_KEY, "DRY_REMOVE"),
        "PNT": _TradeGeometry("paint_sf", "SF", "PNT_INTERIOR_WALL"),
        "FLR": _TradeGeometry("flooring_sf", "SF", "FLR_INSTALL", "FLR_REMOVE"),
        "CRP": _TradeGeometry("flooring_sf", "SF", "CRP_INSTALL", "FLR_REMOVE"),
        "VCT": _TradeGeometry("flooring_sf", "SF", "VCT_INSTALL", "FLR_REMOVE"),
        "TIL": _TradeGeometry("flooring_sf", "SF", "TIL_INSTALL", "FLR_REMOVE"),
        "WDP": _TradeGeometry("flooring_sf", "SF", "WDP_INSTALL", "FLR_REMOVE"),
        "MLD": _TradeGeometry("baseboard_lf", "LF", "MLD_BASEBOARD"),
        "TRM": _TradeGeometry("baseboard_lf", "LF", "MLD_BASEBOARD"),
        "INS": _TradeGeometry("insulation_sf", "SF", "INS_BATT_R13"),
        "CEI": _TradeGeometry("ceiling_sf", "SF", "DRY_CEILING"),
    }
)


class _DimensionCheck(NamedTuple):
    label: str
    trades: tuple[str, ...]
    attribute: str
    unit: str
    cost_key: str
    deviation_type: DeviationType
    critical_on_large_variance: bool


DIMENSION_CHECKS = (
    _DimensionCheck(
        "Drywall", ("DRY",), "drywall_sf", "SF", DRYWALL_REPLACE_KEY,
        DeviationType.DIMENSION_MISMATCH, True,
    ),
    _DimensionCheck(
        "Flooring", FLOORING_TRADES, "flooring_sf", "SF", "FLR_INSTALL",
        DeviationType.QUANTITY_SHORTFALL, False,
    ),
    _DimensionCheck(
        "Baseboard", ("MLD", "TRM"), "baseboard_lf", "LF", "MLD_BASEBOARD",
        DeviationType.QUANTITY_SHORTFALL, False,
    ),
)


def scoped_quantity(items: Iterable[LineItem], unit: str) -> float:
    """
    Quantity an estimate scopes for a trade in ``unit``.

    Removal and rebuild lines usually describe the same area, so the larger
    of the two sums is used rather than their total.
    """
    removal = 0.0
    other = 0.0
    for item in items:
        if item.unit != unit:
            continue
        if item.action == ActionType.REMOVE:
            removal += item.quantity
        elif item.action != ActionType.CLEAN:
            other += item.quantity
    return max(removal, other)


def _coerce_directives(
    directives: ParsedReport | Iterable[ReportDirective | Mapping[str, Any]] | None,
) -> list[ReportDirective]:
    if directives is None:
        return []
    if isinstance(directives, ParsedReport):
        return list(directives.directives)
    return [
        d if isinstance(d, ReportDirective) else ReportDirective.model_validate(d)
        for d in directives
    ]


class DeviationEngine:
    """Report-directive and room-geometry comparison passes."""

    def __init__(
        self,
        baseline: CostBaseline | None = None,
        heuristics: Heuristics | None = None,
    ) -> None:
        self.baseline = baseline or get_baseline()
        self.heuristics = heuristics or DEFAULT_HEURISTICS

    def analyze(
        self,
        estimate: StructuredEstimate,
        directives: ParsedReport | Iterable[ReportDirective | Mapping[str, Any]] | None = None,
        expected: ExpectedQuantities | None = None,
    ) -> DeviationAnalysis:
        """
        Run both comparison passes.

        Args:
            estimate: Parsed estimate
            directives: Expert-report directives, as a ParsedReport or a list
            expected: Expected quantities from the dimension engine

        Returns:
            DeviationAnalysis combining both passes
        """
        measurable = [d for d in _coerce_directives(directives) if d.measurable]

        deviations: list[Deviation] = []
        for directive in measurable:
            deviations.extend(self.compare_directive(estimate, directive, expected))

        comparisons = 0
        if expected is not None:
            for check in DIMENSION_CHECKS:
                if getattr(expected, check.attribute) <= 0:
                    continue
                comparisons += 1
                deviation = self._compare_dimension(estimate, expected, check)
                if deviation is not None:
                    deviations.append(deviation)

        total_min = to_cents(sum((d.impact_min for d in deviations), Decimal("0")))
        total_max = to_cents(sum((d.impact_max for d in deviations), Decimal("0")))
        critical = sum(1 for d in deviations if d.severity == Severity.CRITICAL)
        high = sum(1 for d in deviations if d.severity == Severity.HIGH)

        if not deviations:
            summary = "No significant deviations detected between estimate and reference data."
        else:
            summary = (
                f"Identified {len(deviations)} deviation(s) with estimated financial impact of "
                f"{fmt_money(total_min)} - {fmt_money(total_max)}."
            )
            if critical:
                summary += f" {critical} critical deviation(s) identified."
            if high:
                summary += f" {high} high-priority deviation(s) identified."

        logger.info(
            "Deviation analysis: %d directive(s), %d comparison(s), %d deviation(s)",
            len(measurable),
            comparisons,
            len(deviations),
        )
        return DeviationAnalysis(
            deviations=deviations,
            total_min=total_min,
            total_max=total_max,
            critical_count=critical,
            high_count=high,
            directives_checked=len(measurable),
            dimension_comparisons=comparisons,
            summary=summary,
            baseline=self.baseline.info,
        )

    # -- report pass -----------------------------------------------------------

    def compare_directive(
        self,
        estimate: StructuredEstimate,
        directive: ReportDirective,
        expected: ExpectedQuantities | None = None,
    ) -> list[Deviation]:
        """Deviations for one measurable directive."""
        trade = directive.trade
        trade_name = directive.trade_name or TRADE_CODES.get(trade, trade)
        items = estimate.items_for(trade)

        if not items:
            severity = (
                Severity.CRITICAL if directive.priority == Severity.CRITICAL else Severity.HIGH
            )
            return [
                self._geometry_deviation(
                    DeviationType.MISSING_REQUIRED_TRADE,
                    trade,
                    trade_name,
                    f"Expert report requires {trade_name} but trade not found in estimate",
                    severity,
                    expected,
                    removal=False,
                )
            ]

        removals = [item for item in items if item.is_removal]
        if directive.directive_type == DirectiveType.REMOVE and not removals:
            return [
                self._geometry_deviation(
                    DeviationType.UNDER_SCOPED_REMOVAL,
                    trade,
                    trade_name,
                    f"Expert report requires {trade_name} removal but no removal items found",
                    Severity.HIGH,
                    expected,
                    removal=True,
                )
            ]

        rule = directive.quantity_rule
        if trade == "DRY" and (rule in CUT_HEIGHTS or rule == ScopeRule.FULL_HEIGHT):
            removal_sf = sum(item.quantity for item in removals if item.unit == "SF")
            deviation = self._cut_height(trade_name, rule, removal_sf, expected)
            return [deviation] if deviation else []
        return []

    def _geometry_deviation(
        self,
        deviation_type: DeviationType,
        trade: str,
        trade_name: str,
        issue: str,
        severity: Severity,
        expected: ExpectedQuantities | None,
        removal: bool,
    ) -> Deviation:
        geometry = TRADE_GEOMETRY.get(trade)
        quantity = getattr(expected, geometry.attribute) if expected and geometry else 0.0
        cost_key = (geometry.removal_key if removal else geometry.install_key) if geometry else None
        unit = geometry.unit if geometry else "EA"

        if expected is None or geometry is None or quantity <= 0:
            return Deviation(
                deviation_type=deviation_type,
                trade_code=trade,
                trade_name=trade_name,
                issue=issue,
                estimate_value=0.0,
                expected_value=0.0,
                unit=unit,
                severity=severity,
                source=DeviationSource.REPORT,
                calculation=f"Expert directive not addressed in estimate; {GEOMETRY_REQUIRED}",
            )
        if cost_key is None or cost_key not in self.baseline:
            return Deviation(
                deviation_type=deviation_type,
                trade_code=trade,
                trade_name=trade_name,
                issue=issue,
                estimate_value=0.0,
                expected_value=quantity,
                unit=unit,
                severity=severity,
                source=DeviationSource.BOTH,
                calculation=(
                    f"{fmt_qty(quantity)} {unit} expected from room geometry; "
                    f"no baseline range for {trade} {'removal' if removal else 'installation'}"
                ),
            )

        cost = self.baseline.get(cost_key)
        impact_min, impact_max = self.baseline.exposure(cost_key, quantity, unit) or (
            Decimal("0.00"),
            Decimal("0.00"),
        )
        return Deviation(
            deviation_type=deviation_type,
            trade_code=trade,
            trade_name=trade_name,
            issue=issue,
            estimate_value=0.0,
            expected_value=quantity,
            unit=unit,
            impact_min=impact_min,
            impact_max=impact_max,
            severity=severity,
            source=DeviationSource.BOTH,
            calculation=(
                f"{fmt_qty(quantity)} {unit} expected from room geometry × "
                f"{fmt_money(cost.min)}-{fmt_money(cost.max)}/{unit} "
                f"= {fmt_money(impact_min)}-{fmt_money(impact_max)}"
            ),
        )

    def _cut_height(
        self,
        trade_name: str,
        rule: ScopeRule,
        removal_sf: float,
        expected: ExpectedQuantities | None,
    ) -> Deviation | None:
        if expected is None:
            threshold = self.heuristics.low_cut_removal_sf
            if removal_sf >= threshold:
                return None
            return Deviation(
                deviation_type=DeviationType.INSUFFICIENT_CUT_HEIGHT,
                trade_code="DRY",
                trade_name=trade_name,
                issue=(
                    f"Expert report requires {rule.value} removal but estimate scopes only "
                    f"{fmt_qty(removal_sf)} SF"
                ),
                estimate_value=removal_sf,
                expected_value=threshold,
                unit="SF",
                severity=Severity.HIGH,
                source=DeviationSource.REPORT,
                calculation=(
                    f"Scoped removal {fmt_qty(removal_sf)} SF < {fmt_qty(threshold)} SF threshold; "
                    f"{GEOMETRY_REQUIRED}"
                ),
            )

        perimeter = sum(room.perimeter_lf for room in expected.rooms)
        heights = {room.height for room in expected.rooms}
        if rule == ScopeRule.FULL_HEIGHT:
            required = sum(room.perimeter_lf * room.height for room in expected.rooms)
            height_label = (
                f"{fmt_qty(next(iter(heights)))} ft" if len(heights) == 1 else "room height"
            )
        else:
            cut = CUT_HEIGHTS[rule]
            required = perimeter * cut
            height_label = f"{fmt_qty(cut)} ft"
        required = round(required, 2)
        shortfall = round(required - removal_sf, 2)
        if shortfall <= 0:
            return None

        cost = self.baseline.get(DRYWALL_REPLACE_KEY)
        priced = self.baseline.exposure(DRYWALL_REPLACE_KEY, shortfall, "SF")
        trace = (
            f"Perimeter {fmt_qty(perimeter)} LF × {height_label} = {fmt_qty(required)} SF "
            f"required - {fmt_qty(removal_sf)} SF scoped = {fmt_qty(shortfall)} SF shortfall"
        )
        if priced is None:
            impact_min = impact_max = Decimal("0.00")
            trace += f"; {DRYWALL_REPLACE_KEY} is priced per {cost.unit}, not SF"
        else:
            impact_min, impact_max = priced
            trace += (
                f" × {fmt_money(cost.min)}-{fmt_money(cost.max)}/SF "
                f"= {fmt_money(impact_min)}-{fmt_money(impact_max)}"
            )
        severity = (
            Severity.CRITICAL
            if shortfall > self.heuristics.critical_cut_shortfall_sf
            else Severity.HIGH
        )
        return Deviation(
            deviation_type=DeviationType.INSUFFICIENT_CUT_HEIGHT,
            trade_code="DRY",
            trade_name=trade_name,
            issue=(
                f"Expert report requires {rule.value} removal ({fmt_qty(required)} SF) but "
                f"estimate scopes {fmt_qty(removal_sf)} SF"
            ),
            estimate_value=removal_sf,
            expected_value=required,
            unit="SF",
            impact_min=impact_min,
            impact_max=impact_max,
            severity=severity,
            source=DeviationSource.BOTH,
            calculation=trace,
        )

    # -- dimension pass --------------------------------------------------------

    def _compare_dimension(
        self,
        estimate: StructuredEstimate,
        expected: ExpectedQuantities,
        check: _DimensionCheck,
    ) -> Deviation | None:
        required = getattr(expected, check.attribute)
        actual = scoped_quantity(estimate.items_for(*check.trades), check.unit)
        variance = round(required - actual, 2)
        ratio = variance / required
        if ratio <= self.heuristics.variance_threshold:
            return None

        priced = self.baseline.exposure(check.cost_key, variance, check.unit)
        if priced is None:
            return None
        impact_min, impact_max = priced
        cost = self.baseline.get(check.cost_key)

        large = ratio > self.heuristics.critical_variance
        if check.critical_on_large_variance:
            severity = Severity.CRITICAL if large else Severity.HIGH
        else:
            severity = Severity.HIGH if large else Severity.MODERATE

        if check.attribute == "drywall_sf":
            basis = (
                f"Wall {fmt_qty(expected.total_wall_sf)} SF + ceiling "
                f"{fmt_qty(expected.total_ceiling_sf)} SF = {fmt_qty(required)} SF expected"
            )
        else:
            basis = f"{fmt_qty(required)} {check.unit} expected"
        return Deviation(
            deviation_type=check.deviation_type,
            trade_code=check.trades[0],
            trade_name=TRADE_CODES.get(check.trades[0], check.label),
            issue=(
                f"Estimate shows {fmt_qty(actual)} {check.unit} of {check.label.lower()} but "
                f"dimensions indicate {fmt_qty(required)} {check.unit}"
            ),
            estimate_value=actual,
            expected_value=required,
            unit=check.unit,
            impact_min=impact_min,
            impact_max=impact_max,
            severity=severity,
            source=DeviationSource.DIMENSION,
            calculation=(
                f"{basis} - {fmt_qty(actual)} {check.unit} scoped = {fmt_qty(variance)} "
                f"{check.unit} shortfall ({ratio:.0%}) × "
                f"{fmt_money(cost.min)}-{fmt_money(cost.max)}/{check.unit} "
                f"= {fmt_money(impact_min)}-{fmt_money(impact_max)}"
            ),
        )


def calculate_deviations(
    estimate: StructuredEstimate,
    directives: ParsedReport | Iterable[ReportDirective | Mapping[str, Any]] | None = None,
    expected: ExpectedQuantities | None = None,
    baseline: CostBaseline | None = None,
    heuristics: Heuristics | None = None,
) -> DeviationAnalysis:
    """Convenience wrapper for a one-off deviation analysis."""
    return DeviationEngine(baseline=baseline, heuristics=heuristics).analyze(
        estimate, directives, expected
    )
