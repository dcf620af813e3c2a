"""
Tests for the Loss Expectation Engine.
"""

from estimate_engine.core.findings import LossSeverity, LossType
from estimate_engine.core.models import FindingConfidence
from estimate_engine.modules.loss_expectation import (
    LossExpectationEngine,
    calculate_loss_expectation,
    infer_loss_type,
)


class TestLossTypeInference:
    """Tests for loss type inference."""

    def test_water_signals(self) -> None:
        """Test mitigation or cleaning with equipment reads as water."""
        assert infer_loss_type({"MIT"}) == LossType.WATER
        assert infer_loss_type({"CLN", "EQP"}) == LossType.WATER
        assert infer_loss_type({"CLN", "PNT"}) == LossType.WATER

    def test_fire_signals(self) -> None:
        """Test demolition, framing and haul-away together read as fire."""
        assert infer_loss_type({"DEM", "FRM", "HAU"}) == LossType.FIRE

    def test_roofing_reads_as_wind(self) -> None:
        """Test roofing alone reads as wind."""
        assert infer_loss_type({"RFG"}) == LossType.WIND

    def test_other(self) -> None:
        """Test an estimate with no loss signals."""
        assert infer_loss_type({"PNT", "FLR"}) == LossType.OTHER


class TestLossExpectationEngine:
    """Tests for expected-trade comparison."""

    def test_water_level_1(self, estimate_factory) -> None:
        """Test a small water loss with all critical trades present."""
        estimate = estimate_factory(
            [
                ("MIT", "Water extraction", 1, "LS", "1200.00"),
                ("CLN", "Antimicrobial cleaning", 400, "SF", "300.00"),
                ("EQP", "Dehumidifier per day", 3, "EA", "240.00"),
                ("DRY", "Remove wet drywall", 150, "SF", "225.00"),
            ]
        )
        result = calculate_loss_expectation(estimate)

        assert result.loss_type == LossType.WATER
        assert result.severity == LossSeverity.LEVEL_1
        assert result.probability_score == 75
        assert result.missing_critical_trades == []
        assert result.inference["has_mitigation"] is True
        assert result.confidence == FindingConfidence.LOW

    def test_water_level_2_missing_trades(self, estimate_factory) -> None:
        """Test a larger water loss flags the missing high-probability trades."""
        estimate = estimate_factory(
            [
                ("MIT", "Water extraction", 1, "LS", "1500.00"),
                ("DRY", "Remove wet drywall", 300, "SF", "450.00"),
            ]
        )
        result = LossExpectationEngine().analyze(estimate)

        assert result.severity == LossSeverity.LEVEL_2
        assert result.probability_score == 26
        missing = [trade.trade_code for trade in result.missing_critical_trades]
        assert missing == ["INS", "PNT", "FLR", "MLD", "CLN", "EQP"]
        assert "Missing high-probability trades: Insulation" in result.summary

    def test_water_category_3(self, estimate_factory) -> None:
        """Test demolition on a water loss escalates to category 3."""
        estimate = estimate_factory(
            [
                ("MIT", "Water extraction", 1, "LS", "1500.00"),
                ("DEM", "Demolition of wet materials", 1, "LS", "800.00"),
            ]
        )
        assert calculate_loss_expectation(estimate).severity == LossSeverity.CATEGORY_3

    def test_fire_heavy(self, estimate_factory) -> None:
        """Test structural trades on a fire loss mean heavy severity."""
        estimate = estimate_factory(
            [
                ("DEM", "Demolition of charred materials", 1, "LS", "3000.00"),
                ("FRM", "Replace wall framing", 40, "LF", "1200.00"),
                ("HAU", "Haul debris", 2, "EA", "900.00"),
            ]
        )
        result = calculate_loss_expectation(estimate)
        assert result.loss_type == LossType.FIRE
        assert result.severity == LossSeverity.HEAVY
        assert result.inference["has_structural_trades"] is True

    def test_wind_minor(self, estimate_factory) -> None:
        """Test roofing-only estimates score against the minor wind profile."""
        estimate = estimate_factory([("RFG", "Replace shingles", 20, "SQ", "7000.00")])
        result = calculate_loss_expectation(estimate)
        assert result.loss_type == LossType.WIND
        assert result.severity == LossSeverity.MINOR
        assert result.probability_score == 58
        assert result.missing_critical_trades == []

    def test_undetermined(self, estimate_factory) -> None:
        """Test an estimate with no loss signals has no expected-trade profile."""
        estimate = estimate_factory([("PNT", "Paint walls", 300, "SF", "450.00")])
        result = calculate_loss_expectation(estimate)
        assert result.loss_type == LossType.OTHER
        assert result.severity == LossSeverity.UNDETERMINED
        assert result.expected_trades == []
        assert result.probability_score == 100
        assert result.summary == "Loss type OTHER: no expected-trade profile applies."
