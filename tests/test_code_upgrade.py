"""
Tests for the Code Upgrade Engine.
"""

from decimal import Decimal

from estimate_engine.core.findings import QuantityBasis
from estimate_engine.core.models import Severity
from estimate_engine.core.structural_parser import parse_estimate
from estimate_engine.modules.code_upgrade import CodeUpgradeEngine, analyze_code_upgrades, roof_area_sf


class TestCodeUpgradeEngine:
    """Tests for the five code-requirement rules."""

    def test_tab_example_smoke_detectors(self, tab_estimate_text: str) -> None:
        """Test drywall work triggers the smoke detector rule only."""
        result = analyze_code_upgrades(parse_estimate(tab_estimate_text))
        assert [risk.rule_id for risk in result.risks] == ["CODE-005"]
        risk = result.risks[0]
        assert risk.quantity == 3
        assert risk.quantity_basis == QuantityBasis.ASSUMED
        assert (risk.impact_min, risk.impact_max) == (Decimal("300.00"), Decimal("600.00"))
        assert risk.severity == Severity.MODERATE

    def test_afci(self, estimate_factory) -> None:
        """Test electrical work without AFCI assumes two circuits."""
        estimate = estimate_factory([("ELE", "Replace outlets", 4, "EA", "400.00")])
        risks = {risk.rule_id: risk for risk in analyze_code_upgrades(estimate).risks}
        afci = risks["CODE-001"]
        assert afci.quantity == 2
        assert (afci.impact_min, afci.impact_max) == (Decimal("300.00"), Decimal("600.00"))
        assert afci.calculation == "2 circuits (assumed) × $150.00-$300.00/EA = $300.00-$600.00"
        assert "CODE-005" in risks

    def test_afci_rewire(self, estimate_factory) -> None:
        """Test rewiring raises the assumed circuit count."""
        estimate = estimate_factory([("ELE", "Rewire kitchen", 1, "EA", "1800.00")])
        risks = {risk.rule_id: risk for risk in analyze_code_upgrades(estimate).risks}
        assert risks["CODE-001"].quantity == 4
        assert risks["CODE-001"].impact_max == Decimal("1200.00")

    def test_afci_present(self, estimate_factory) -> None:
        """Test an explicit AFCI line suppresses the rule."""
        estimate = estimate_factory(
            [
                ("ELE", "Replace outlets", 4, "EA", "400.00"),
                ("ELE", "Install AFCI breaker", 2, "EA", "400.00"),
            ]
        )
        rule_ids = {risk.rule_id for risk in analyze_code_upgrades(estimate).risks}
        assert "CODE-001" not in rule_ids

    def test_roofing_measured_quantities(self, estimate_factory) -> None:
        """Test drip edge and ice barrier derive from the roofing area."""
        estimate = estimate_factory([("RFG", "Install composition shingles", 20, "SQ", "7000.00")])
        result = analyze_code_upgrades(estimate)
        risks = {risk.rule_id: risk for risk in result.risks}

        drip = risks["CODE-002"]
        assert drip.quantity == 178.9
        assert drip.quantity_basis == QuantityBasis.MEASURED
        assert (drip.impact_min, drip.impact_max) == (Decimal("536.70"), Decimal("1073.40"))
        assert drip.calculation.startswith("√2,000 SF × 4 = 178.9 LF")

        ice = risks["CODE-003"]
        assert ice.quantity == 400
        assert (ice.impact_min, ice.impact_max) == (Decimal("1600.00"), Decimal("3200.00"))
        assert ice.calculation.startswith("2,000 SF × 20% = 400 SF")

        permit = risks["CODE-004"]
        assert permit.severity == Severity.CRITICAL
        assert (permit.impact_min, permit.impact_max) == (Decimal("200.00"), Decimal("1000.00"))
        assert result.critical_count == 1
        assert "CODE-005" not in risks

    def test_permit_threshold(self, estimate_factory) -> None:
        """Test the permit rule needs RCV above the threshold."""
        estimate = estimate_factory([("RFG", "Install composition shingles", 10, "SQ", "4000.00")])
        rule_ids = {risk.rule_id for risk in analyze_code_upgrades(estimate).risks}
        assert "CODE-004" not in rule_ids

    def test_roofing_without_area(self, estimate_factory) -> None:
        """Test lump-sum roofing skips the area rules with notes."""
        estimate = estimate_factory([("RFG", "Roof repair", 1, "LS", "900.00")])
        result = CodeUpgradeEngine().analyze(estimate)
        assert result.risks == []
        assert len(result.notes) == 2
        assert result.summary == "No code-required items detected as missing."

    def test_roof_area(self, estimate_factory) -> None:
        """Test SQ and SF roofing quantities combine."""
        estimate = estimate_factory(
            [
                ("RFG", "Install composition shingles", 20, "SQ", "7000.00"),
                ("RFG", "Install roof decking", 150, "SF", "600.00"),
            ]
        )
        assert roof_area_sf(estimate) == 2150
