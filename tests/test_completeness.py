"""
Tests for the Completeness Engine.
"""

from estimate_engine.core.findings import IssueType
from estimate_engine.core.models import Severity
from estimate_engine.core.structural_parser import parse_estimate
from estimate_engine.modules.completeness import CompletenessEngine, calculate_completeness


class TestCompletenessEngine:
    """Tests for per-trade completeness scoring."""

    def test_tab_example(self, tab_estimate_text: str) -> None:
        """Test trade scores and the integrity score for the three-line estimate."""
        result = calculate_completeness(parse_estimate(tab_estimate_text))
        scores = {score.trade_code: score for score in result.trade_scores}

        assert scores["DRY"].score == 60
        assert scores["DRY"].issues[0].issue_type == IssueType.MISSING_REPLACEMENT
        assert scores["PNT"].score == 100
        assert scores["FLR"].score == 75
        assert scores["FLR"].has_finish is False
        assert result.critical_issues == 1
        assert result.high_issues == 1
        assert result.structural_integrity_score == 71
        assert "moderate structural integrity (71/100)" in result.summary

    def test_removal_only(self, estimate_factory) -> None:
        """Test a removal-only trade scores 60."""
        estimate = estimate_factory([("CAB", "Remove base cabinets", 10, "LF", "200.00")])
        result = calculate_completeness(estimate)
        score = result.trade_scores[0]
        assert score.score == 60
        assert score.issues[0].issue_type == IssueType.MISSING_REPLACEMENT
        assert score.issues[0].message == "Cabinets removal present without replacement (10 LF removed)"
        assert result.structural_integrity_score == 55

    def test_zero_quantity(self, estimate_factory) -> None:
        """Test zero-quantity lines are critical."""
        estimate = estimate_factory(
            [
                ("PNT", "Paint walls", 0, "SF", "100.00"),
                ("PNT", "Paint ceiling", 100, "SF", "150.00"),
            ]
        )
        score = calculate_completeness(estimate).trade_scores[0]
        assert score.score == 80
        assert score.issues[0].issue_type == IssueType.ZERO_QUANTITY
        assert score.issues[0].severity == Severity.CRITICAL
        assert score.issues[0].line_numbers == [1]

    def test_quantity_mismatch(self, estimate_factory) -> None:
        """Test removal and replacement quantities diverging by more than 15%."""
        estimate = estimate_factory(
            [
                ("FLR", "Remove laminate flooring", 200, "SF", "200.00"),
                ("FLR", "Install laminate flooring", 150, "SF", "900.00"),
                ("MLD", "Install baseboard", 60, "LF", "240.00"),
            ]
        )
        scores = {s.trade_code: s for s in calculate_completeness(estimate).trade_scores}
        assert scores["FLR"].score == 85
        assert scores["FLR"].quantity_consistent is False
        assert scores["FLR"].issues[0].issue_type == IssueType.QUANTITY_MISMATCH
        assert scores["FLR"].has_finish is True

    def test_within_tolerance(self, estimate_factory) -> None:
        """Test a 10% divergence is consistent."""
        estimate = estimate_factory(
            [
                ("DRY", "Remove drywall", 100, "SF", "150.00"),
                ("DRY", "Replace drywall", 110, "SF", "400.00"),
                ("PNT", "Paint walls", 110, "SF", "200.00"),
            ]
        )
        result = calculate_completeness(estimate)
        assert all(score.score == 100 for score in result.trade_scores)
        assert result.structural_integrity_score == 100
        assert result.summary.endswith("All trades appear structurally complete.")

    def test_score_floor(self, estimate_factory) -> None:
        """Test penalties never take a trade below zero."""
        estimate = estimate_factory(
            [
                ("TIL", "Remove tile", 0, "SF", "50.00"),
                ("TIL", "Tear out tile", 0, "SF", "50.00"),
                ("TIL", "Demo tile backer", 0, "SF", "50.00"),
            ]
        )
        score = calculate_completeness(estimate).trade_scores[0]
        assert score.score == 0
        assert len(score.issues) == 4

    def test_empty_estimate(self, estimate_factory) -> None:
        """Test an empty estimate is fully complete."""
        result = CompletenessEngine().analyze(estimate_factory([]))
        assert result.trade_scores == []
        assert result.structural_integrity_score == 100
