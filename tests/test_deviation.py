"""
Tests for the Deviation Engine.
"""

from decimal import Decimal

import pytest

from estimate_engine.core.cost_baseline import CostBaseline
from estimate_engine.core.findings import (
    DeviationSource,
    DeviationType,
    DirectiveType,
    ParsedReport,
    ReportDirective,
)
from estimate_engine.core.models import ScopeRule, Severity
from estimate_engine.modules.deviation import DeviationEngine, calculate_deviations, scoped_quantity
from estimate_engine.modules.dimension import calculate_expected_quantities


@pytest.fixture
def engine() -> DeviationEngine:
    return DeviationEngine()


def _directive(trade: str, rule: ScopeRule | None, **kwargs) -> ReportDirective:
    return ReportDirective(
        trade=trade,
        directive_type=kwargs.pop("directive_type", DirectiveType.REMOVE),
        quantity_rule=rule,
        priority=kwargs.pop("priority", Severity.HIGH),
        **kwargs,
    )


class TestReportPass:
    """Tests for directive comparison."""

    def test_insufficient_cut_height(self, engine, estimate_factory, rooms) -> None:
        """Test a 4 ft cut directive against 100 SF of scoped removal."""
        estimate = estimate_factory([("DRY", "Remove drywall", 100, "SF", "150.00")])
        expected = calculate_expected_quantities(rooms, ScopeRule.CUT_4FT)

        deviations = engine.compare_directive(estimate, _directive("DRY", ScopeRule.CUT_4FT), expected)

        assert len(deviations) == 1
        deviation = deviations[0]
        assert deviation.deviation_type == DeviationType.INSUFFICIENT_CUT_HEIGHT
        assert deviation.expected_value == 280
        assert deviation.estimate_value == 100
        assert (deviation.impact_min, deviation.impact_max) == (Decimal("450.00"), Decimal("900.00"))
        assert deviation.severity == Severity.HIGH
        assert deviation.source == DeviationSource.BOTH
        assert deviation.calculation == (
            "Perimeter 70 LF × 4 ft = 280 SF required - 100 SF scoped = 180 SF shortfall "
            "× $2.50-$5.00/SF = $450.00-$900.00"
        )

    def test_cut_height_with_mismatched_baseline_unit(self, estimate_factory, rooms, baseline) -> None:
        """Test an override table pricing drywall per LF leaves the shortfall unpriced."""
        entries = {key: cost.model_dump(mode="json") for key, cost in baseline.entries.items()}
        entries["DRY_REPLACE_1/2"] = {"min": "2.50", "max": "5.00", "unit": "LF"}
        override = CostBaseline.from_dict(
            {
                "version": "2026.03-LF",
                "effective_date": "2026-03-01",
                "region": "US-NATIONAL",
                "entries": entries,
            }
        )
        estimate = estimate_factory([("DRY", "Remove drywall", 100, "SF", "150.00")])
        expected = calculate_expected_quantities(rooms, ScopeRule.CUT_4FT)

        deviations = DeviationEngine(override).compare_directive(
            estimate, _directive("DRY", ScopeRule.CUT_4FT), expected
        )

        assert len(deviations) == 1
        deviation = deviations[0]
        assert deviation.deviation_type == DeviationType.INSUFFICIENT_CUT_HEIGHT
        assert deviation.impact_min == deviation.impact_max == Decimal("0.00")
        assert deviation.calculation == (
            "Perimeter 70 LF × 4 ft = 280 SF required - 100 SF scoped = 180 SF shortfall; "
            "DRY_REPLACE_1/2 is priced per LF, not SF"
        )

    def test_cut_height_satisfied(self, engine, estimate_factory, rooms) -> None:
        """Test no deviation when scoped removal covers the cut."""
        estimate = estimate_factory([("DRY", "Remove drywall", 300, "SF", "450.00")])
        expected = calculate_expected_quantities(rooms, ScopeRule.CUT_4FT)
        assert engine.compare_directive(estimate, _directive("DRY", ScopeRule.CUT_4FT), expected) == []

    def test_cut_height_without_rooms(self, engine, estimate_factory) -> None:
        """Test low removal without geometry is flagged but unpriced."""
        estimate = estimate_factory([("DRY", "Remove drywall", 50, "SF", "75.00")])
        deviations = engine.compare_directive(estimate, _directive("DRY", ScopeRule.CUT_4FT))

        assert len(deviations) == 1
        deviation = deviations[0]
        assert deviation.severity == Severity.HIGH
        assert deviation.impact_min == deviation.impact_max == Decimal("0.00")
        assert deviation.source == DeviationSource.REPORT
        assert "room geometry required to quantify" in deviation.calculation

    def test_large_shortfall_is_critical(self, engine, estimate_factory, rooms) -> None:
        """Test full-height shortfalls above 400 SF are critical."""
        estimate = estimate_factory([("DRY", "Remove drywall", 100, "SF", "150.00")])
        expected = calculate_expected_quantities(rooms, ScopeRule.FULL_HEIGHT)
        deviation = engine.compare_directive(
            estimate, _directive("DRY", ScopeRule.FULL_HEIGHT), expected
        )[0]
        assert deviation.expected_value == 560
        assert deviation.severity == Severity.CRITICAL
        assert "× 8 ft = 560 SF required" in deviation.calculation

    def test_missing_trade_priced_from_geometry(self, engine, estimate_factory, rooms) -> None:
        """Test a missing insulation trade is priced from expected insulation area."""
        estimate = estimate_factory([("DRY", "Remove drywall", 560, "SF", "840.00")])
        expected = calculate_expected_quantities(rooms, ScopeRule.FULL_HEIGHT)
        deviation = engine.compare_directive(
            estimate, _directive("INS", ScopeRule.FULL_HEIGHT), expected
        )[0]
        assert deviation.deviation_type == DeviationType.MISSING_REQUIRED_TRADE
        assert deviation.trade_name == "Insulation"
        assert (deviation.impact_min, deviation.impact_max) == (Decimal("560.00"), Decimal("1400.00"))
        assert deviation.source == DeviationSource.BOTH
        assert deviation.severity == Severity.HIGH

    def test_missing_trade_without_rooms(self, engine, estimate_factory) -> None:
        """Test a missing trade without geometry carries no dollar range."""
        estimate = estimate_factory([("DRY", "Remove drywall", 560, "SF", "840.00")])
        deviation = engine.compare_directive(
            estimate, _directive("INS", ScopeRule.FULL_HEIGHT, priority=Severity.CRITICAL)
        )[0]
        assert deviation.impact_max == Decimal("0.00")
        assert deviation.source == DeviationSource.REPORT
        assert deviation.severity == Severity.CRITICAL

    def test_under_scoped_removal(self, engine, estimate_factory, rooms) -> None:
        """Test a removal directive against a trade with only rebuild lines."""
        estimate = estimate_factory(
            [
                ("DRY", "Replace drywall", 200, "SF", "700.00"),
                ("PNT", "Paint walls", 200, "SF", "300.00"),
            ]
        )
        expected = calculate_expected_quantities(rooms, ScopeRule.FULL_HEIGHT)
        deviation = engine.compare_directive(
            estimate, _directive("DRY", ScopeRule.FULL_HEIGHT), expected
        )[0]
        assert deviation.deviation_type == DeviationType.UNDER_SCOPED_REMOVAL
        assert (deviation.impact_min, deviation.impact_max) == (Decimal("860.00"), Decimal("2150.00"))

    def test_unmeasurable_directives_skipped(self, engine, estimate_factory) -> None:
        """Test non-measurable directives are not compared."""
        estimate = estimate_factory([("PNT", "Paint walls", 200, "SF", "300.00")])
        report = ParsedReport(
            directives=[_directive("INS", ScopeRule.FULL_HEIGHT, measurable=False)]
        )
        result = engine.analyze(estimate, report)
        assert result.deviations == []
        assert result.directives_checked == 0

    def test_camel_case_directives(self, engine, estimate_factory) -> None:
        """Test directives supplied as camelCase mappings."""
        estimate = estimate_factory([("PNT", "Paint walls", 200, "SF", "300.00")])
        result = engine.analyze(
            estimate,
            [{"trade": "INS", "directiveType": "REMOVE", "quantityRule": "FULL_HEIGHT", "priority": "HIGH"}],
        )
        assert result.directives_checked == 1
        assert result.deviations[0].deviation_type == DeviationType.MISSING_REQUIRED_TRADE


class TestDimensionPass:
    """Tests for geometry comparison."""

    def test_flooring_shortfall(self, engine, estimate_factory, rooms) -> None:
        """Test 200 SF of flooring against 300 SF expected."""
        estimate = estimate_factory(
            [
                ("DRY", "Replace drywall", 860, "SF", "3000.00"),
                ("FLR", "Install flooring", 200, "SF", "1200.00"),
                ("MLD", "Install baseboard", 70, "LF", "280.00"),
            ]
        )
        expected = calculate_expected_quantities(rooms, ScopeRule.FULL_HEIGHT)
        result = engine.analyze(estimate, expected=expected)

        assert result.dimension_comparisons == 3
        assert len(result.deviations) == 1
        deviation = result.deviations[0]
        assert deviation.deviation_type == DeviationType.QUANTITY_SHORTFALL
        assert deviation.trade_code == "FLR"
        assert deviation.severity == Severity.MODERATE
        assert deviation.source == DeviationSource.DIMENSION
        assert (deviation.impact_min, deviation.impact_max) == (Decimal("300.00"), Decimal("800.00"))
        assert deviation.calculation == (
            "300 SF expected - 200 SF scoped = 100 SF shortfall (33%) × $3.00-$8.00/SF "
            "= $300.00-$800.00"
        )

    def test_missing_drywall_is_critical(self, engine, estimate_factory, rooms) -> None:
        """Test a large drywall variance is critical with a wall + ceiling trace."""
        estimate = estimate_factory([("FLR", "Install flooring", 300, "SF", "1800.00")])
        expected = calculate_expected_quantities(rooms, ScopeRule.FULL_HEIGHT)
        result = calculate_deviations(estimate, expected=expected)

        by_trade = {d.trade_code: d for d in result.deviations}
        drywall = by_trade["DRY"]
        assert drywall.deviation_type == DeviationType.DIMENSION_MISMATCH
        assert drywall.severity == Severity.CRITICAL
        assert (drywall.impact_min, drywall.impact_max) == (Decimal("2150.00"), Decimal("4300.00"))
        assert drywall.calculation.startswith("Wall 560 SF + ceiling 300 SF = 860 SF expected")
        assert by_trade["MLD"].severity == Severity.HIGH
        assert "FLR" not in by_trade
        assert result.critical_count == 1
        assert result.high_count == 1

    def test_scoped_quantity_uses_larger_side(self, estimate_factory) -> None:
        """Test removal and rebuild of the same area are not double counted."""
        estimate = estimate_factory(
            [
                ("FLR", "Remove flooring", 300, "SF", "300.00"),
                ("FLR", "Install flooring", 280, "SF", "1680.00"),
                ("FLR", "Clean subfloor", 300, "SF", "150.00"),
            ]
        )
        assert scoped_quantity(estimate.line_items, "SF") == 300

    def test_no_inputs(self, engine, estimate_factory) -> None:
        """Test no directives and no geometry yields an empty analysis."""
        result = engine.analyze(estimate_factory([("PNT", "Paint walls", 200, "SF", "300.00")]))
        assert result.deviations == []
        assert result.summary == "No significant deviations detected between estimate and reference data."
