"""
Tests for the Exposure Engine.
"""

from decimal import Decimal

from estimate_engine.config import Heuristics
from estimate_engine.core.models import Severity
from estimate_engine.core.structural_parser import parse_estimate
from estimate_engine.modules.exposure import ExposureEngine, calculate_exposure, exposure_severity


class TestExposureSeverity:
    """Tests for exposure grading."""

    def test_grades_by_share_of_rcv(self) -> None:
        """Test percentage thresholds apply when dollars are small."""
        rcv = Decimal("1000")
        assert exposure_severity(Decimal("250"), Decimal("250"), rcv) == Severity.CRITICAL
        assert exposure_severity(Decimal("150"), Decimal("150"), rcv) == Severity.HIGH
        assert exposure_severity(Decimal("60"), Decimal("60"), rcv) == Severity.MODERATE
        assert exposure_severity(Decimal("30"), Decimal("30"), rcv) == Severity.LOW
        assert exposure_severity(Decimal("10"), Decimal("10"), rcv) == Severity.MINIMAL

    def test_grades_by_dollars(self) -> None:
        """Test dollar thresholds apply on large estimates."""
        rcv = Decimal("1000000")
        assert exposure_severity(Decimal("6000"), Decimal("6000"), rcv) == Severity.CRITICAL
        assert exposure_severity(Decimal("2500"), Decimal("2500"), rcv) == Severity.HIGH
        assert exposure_severity(Decimal("0"), Decimal("0"), Decimal("0")) == Severity.MINIMAL


class TestExposureEngine:
    """Tests for the five exposure rules."""

    def test_tab_example(self, tab_estimate_text: str) -> None:
        """Test insulation, removal-without-replacement and trim exposures."""
        result = calculate_exposure(parse_estimate(tab_estimate_text))
        by_rule = {item.rule_id: item for item in result.items}

        assert list(by_rule) == ["EXP-002", "EXP-003", "EXP-004"]

        insulation = by_rule["EXP-002"]
        assert insulation.trade_code == "INS"
        assert insulation.quantity == 200
        assert (insulation.impact_min, insulation.impact_max) == (Decimal("200.00"), Decimal("500.00"))
        assert insulation.severity == Severity.HIGH

        rebuild = by_rule["EXP-003"]
        assert rebuild.trade_code == "DRY"
        assert (rebuild.impact_min, rebuild.impact_max) == (Decimal("1400.00"), Decimal("2800.00"))
        assert rebuild.severity == Severity.CRITICAL
        assert rebuild.related_lines == [1]

        trim = by_rule["EXP-004"]
        assert trim.quantity == 40
        assert trim.unit == "LF"
        assert (trim.impact_min, trim.impact_max) == (Decimal("120.00"), Decimal("320.00"))
        assert trim.calculation == "√100 SF × 4 = 40 LF × $3.00-$8.00/LF = $120.00-$320.00"

        assert result.total_min == Decimal("1720.00")
        assert result.total_max == Decimal("3620.00")
        assert result.critical_count == 1
        assert result.high_count == 2
        assert result.risk_score == 100
        assert result.baseline.version == "2026.02"

    def test_missing_paint_only(self, estimate_factory) -> None:
        """Test drywall replacement with insulation and trim yields exactly one paint exposure."""
        estimate = estimate_factory(
            [
                ("DRY", "Replace drywall", 120, "SF", "420.00"),
                ("INS", "Install insulation", 120, "SF", "180.00"),
                ("MLD", "Install baseboard", 40, "LF", "160.00"),
            ]
        )
        result = ExposureEngine().analyze(estimate)

        assert len(result.items) == 1
        item = result.items[0]
        assert item.rule_id == "EXP-001"
        assert item.trade_code == "PNT"
        assert item.quantity == 120
        assert item.impact_min == Decimal("180.00")
        assert item.impact_max == Decimal("420.00")
        assert item.calculation == "120 SF × $1.50-$3.50/SF = $180.00-$420.00"

    def test_detach_reset(self, estimate_factory) -> None:
        """Test plumbing fixtures with flooring and no detach/reset line."""
        estimate = estimate_factory(
            [
                ("PLM", "Plumbing fixture supply line", 1, "EA", "150.00"),
                ("FLR", "Install tile flooring", 100, "SF", "800.00"),
                ("MLD", "Install baseboard", 40, "LF", "160.00"),
            ]
        )
        result = ExposureEngine().analyze(estimate)

        assert [item.rule_id for item in result.items] == ["EXP-005"]
        item = result.items[0]
        assert item.quantity == 3
        assert (item.impact_min, item.impact_max) == (Decimal("300.00"), Decimal("750.00"))
        assert item.calculation.startswith("3 fixtures (assumed)")

    def test_detach_line_suppresses_rule(self, estimate_factory) -> None:
        """Test an existing detach/reset line clears the fixture exposure."""
        estimate = estimate_factory(
            [
                ("PLM", "Plumbing fixture supply line", 1, "EA", "150.00"),
                ("PLM", "Detach and reset toilet", 1, "EA", "200.00"),
                ("FLR", "Install tile flooring", 100, "SF", "800.00"),
                ("MLD", "Install baseboard", 40, "LF", "160.00"),
            ]
        )
        assert ExposureEngine().analyze(estimate).items == []

    def test_non_rebuild_trades_ignored(self, estimate_factory) -> None:
        """Test demolition and mitigation removals are not priced as missing rebuilds."""
        estimate = estimate_factory(
            [
                ("DEM", "Demolition remove debris", 1, "LS", "500.00"),
                ("MIT", "Remove standing water", 1, "LS", "900.00"),
            ]
        )
        result = calculate_exposure(estimate)
        assert result.items == []
        assert result.risk_score == 0
        assert result.summary == "No significant scope gaps detected based on structural analysis."

    def test_heuristic_override(self, estimate_factory) -> None:
        """Test the rebuild multiplier comes from the heuristics."""
        estimate = estimate_factory([("CAB", "Remove base cabinets", 10, "LF", "200.00")])
        heuristics = Heuristics(rebuild_multiplier_min=1.5, rebuild_multiplier_max=2.0)
        result = calculate_exposure(estimate, heuristics=heuristics)
        assert len(result.items) == 1
        assert result.items[0].impact_min == Decimal("300.00")
        assert result.items[0].impact_max == Decimal("400.00")

    def test_disabled_rule(self, tab_estimate_text: str) -> None:
        """Test a disabled rule produces no findings."""
        engine = ExposureEngine()
        assert engine.engine.disable_rule("EXP-003")
        result = engine.analyze(parse_estimate(tab_estimate_text))
        assert "EXP-003" not in {item.rule_id for item in result.items}
        assert [rule["rule_id"] for rule in engine.engine.list_rules()] == [
            "EXP-001",
            "EXP-002",
            "EXP-003",
            "EXP-004",
            "EXP-005",
        ]

    def test_impact_ranges_ordered(self, tab_estimate_text: str) -> None:
        """Test every exposure satisfies 0 <= min <= max."""
        for item in calculate_exposure(parse_estimate(tab_estimate_text)).items:
            assert Decimal("0") <= item.impact_min <= item.impact_max
