"""
Analysis Report Formatting Module.
Renders an EstimateAnalysis as plain text, a dict or JSON.
"""

import json
from typing import TYPE_CHECKING, Any

from ..core.models import Severity, fmt_money, fmt_qty
from .tables import trade_summary_frame

if TYPE_CHECKING:
    from ..engine import EstimateAnalysis


class ReportFormatter:
    """
    Formats analysis results for various output formats.
    """

    SEVERITY_LABELS = {
        Severity.CRITICAL: "CRITICAL",
        Severity.HIGH: "HIGH",
        Severity.MODERATE: "MODERATE",
        Severity.LOW: "LOW",
        Severity.MINIMAL: "MINIMAL",
    }

    def __init__(self, analysis: "EstimateAnalysis") -> None:
        self.analysis = analysis

    def to_text(self, include_details: bool = True) -> str:
        """
        Format the analysis as a plain text report.

        Args:
            include_details: Whether to include per-engine findings

        Returns:
            Formatted text report
        """
        analysis = self.analysis
        estimate = analysis.estimate
        intel = analysis.intelligence
        lines: list[str] = []

        # Header
        lines.append("=" * 70)
        lines.append("ESTIMATE INTEGRITY REPORT")
        lines.append("=" * 70)
        lines.append("")
        lines.append(f"Analysis Date: {intel.analysis_date.strftime('%Y-%m-%d %H:%M:%S UTC')}")
        lines.append(
            f"Cost Baseline: {intel.baseline.version} "
            f"({intel.baseline.region}, effective {intel.baseline.effective_date.isoformat()})"
        )
        lines.append(
            f"Format: {estimate.format.value}  Confidence: {estimate.confidence.value}  "
            f"Validation Score: {estimate.validation_score}/100"
        )
        lines.append("")

        # Summary section
        lines.append("-" * 70)
        lines.append("SUMMARY")
        lines.append("-" * 70)
        lines.append(f"Line Items: {intel.line_item_count}")
        lines.append(f"Total RCV: {fmt_money(intel.total_rcv)}")
        lines.append(f"Total ACV: {fmt_money(intel.total_acv)}")
        lines.append(f"Structural Integrity Score: {intel.structural_integrity_score}/100")
        lines.append(
            f"Total Exposure: {fmt_money(intel.total_exposure_min)} - "
            f"{fmt_money(intel.total_exposure_max)}"
        )
        lines.append(
            f"Consolidated Risk Score: {intel.consolidated_risk_score}/100 "
            f"({intel.risk_tier.value} RISK)"
        )
        lines.append("")
        lines.append(intel.executive_summary)
        lines.append("")

        if intel.engines_used:
            lines.append(f"Engines Used: {', '.join(intel.engines_used)}")
            lines.append("")

        if estimate.warnings:
            lines.append("Parse Warnings:")
            for warning in estimate.warnings:
                lines.append(f"  - {warning}")
            lines.append("")

        if include_details:
            lines.extend(self._trade_table())
            lines.extend(self._exposure_section())
            lines.extend(self._completeness_section())
            lines.extend(self._loss_section())
            lines.extend(self._code_section())
            lines.extend(self._dimension_section())
            lines.extend(self._deviation_section())
            lines.extend(self._overlay_section())

        # Footer
        lines.append("=" * 70)
        lines.append("END OF REPORT")
        lines.append("=" * 70)

        return "\n".join(lines)

    def _heading(self, title: str) -> list[str]:
        return ["-" * 70, title, "-" * 70]

    def _trade_table(self) -> list[str]:
        frame = trade_summary_frame(self.analysis.estimate)
        if frame.empty:
            return []
        lines = self._heading("TRADES")
        lines.extend(frame.to_string(index=False, na_rep="-").splitlines())
        lines.append("")
        return lines

    def _exposure_section(self) -> list[str]:
        exposure = self.analysis.exposure
        if not exposure.items:
            return []
        lines = self._heading("EXPOSURE")
        for item in exposure.items:
            lines.append("")
            lines.append(
                f"[{self.SEVERITY_LABELS[item.severity]}] {item.rule_id} {item.trade_name}: "
                f"{item.description}"
            )
            lines.append(f"   Impact: {fmt_money(item.impact_min)} - {fmt_money(item.impact_max)}")
            lines.append(f"   Calculation: {item.calculation}")
            if item.related_lines:
                lines.append(f"   Lines: {', '.join(str(n) for n in item.related_lines)}")
        lines.append("")
        lines.append(exposure.summary)
        lines.append("")
        return lines

    def _completeness_section(self) -> list[str]:
        completeness = self.analysis.completeness
        if not completeness.trade_scores:
            return []
        lines = self._heading("TRADE COMPLETENESS")
        for trade in completeness.trade_scores:
            lines.append(f"{trade.trade_code:<4} {trade.trade_name:<32} {trade.score:>3}/100")
            for issue in trade.issues:
                lines.append(f"     [{self.SEVERITY_LABELS[issue.severity]}] {issue.message}")
        lines.append("")
        lines.append(completeness.summary)
        lines.append("")
        return lines

    def _loss_section(self) -> list[str]:
        loss = self.analysis.loss_expectation
        lines = self._heading("LOSS EXPECTATION")
        lines.append(
            f"Loss Type: {loss.loss_type.value}  Severity: {loss.severity.value}  "
            f"Match: {loss.probability_score}%"
        )
        for trade in loss.missing_critical_trades:
            lines.append(
                f"   Missing: {trade.trade_code} {trade.trade_name} "
                f"({trade.probability:.0%}) {trade.reason}"
            )
        if loss.summary:
            lines.append(loss.summary)
        lines.append("")
        return lines

    def _code_section(self) -> list[str]:
        code = self.analysis.code_upgrades
        if not code.risks and not code.notes:
            return []
        lines = self._heading("CODE UPGRADE RISKS")
        for risk in code.risks:
            lines.append("")
            lines.append(
                f"[{self.SEVERITY_LABELS[risk.severity]}] {risk.rule_id} {risk.code_item}: "
                f"{risk.description}"
            )
            lines.append(f"   Requirement: {risk.requirement}")
            lines.append(f"   Impact: {fmt_money(risk.impact_min)} - {fmt_money(risk.impact_max)}")
            lines.append(f"   Calculation: {risk.calculation} ({risk.quantity_basis.value})")
        for note in code.notes:
            lines.append(f"   Note: {note}")
        lines.append("")
        return lines

    def _dimension_section(self) -> list[str]:
        expected = self.analysis.expected_quantities
        if expected is None:
            return []
        lines = self._heading(f"EXPECTED QUANTITIES ({expected.scope_rule.value})")
        for room in expected.rooms:
            lines.append(
                f"{room.name:<20} floor {fmt_qty(room.floor_sf)} SF  "
                f"perimeter {fmt_qty(room.perimeter_lf)} LF  wall {fmt_qty(room.wall_sf)} SF"
            )
        lines.append(f"Drywall: {fmt_qty(expected.drywall_sf)} SF")
        lines.append(f"Paint: {fmt_qty(expected.paint_sf)} SF")
        lines.append(f"Flooring: {fmt_qty(expected.flooring_sf)} SF")
        lines.append(f"Baseboard: {fmt_qty(expected.baseboard_lf)} LF")
        lines.append("")
        return lines

    def _deviation_section(self) -> list[str]:
        deviations = self.analysis.deviations
        if deviations is None or not deviations.deviations:
            return []
        lines = self._heading("DEVIATIONS")
        for deviation in deviations.deviations:
            lines.append("")
            lines.append(
                f"[{self.SEVERITY_LABELS[deviation.severity]}] "
                f"{deviation.deviation_type.value} ({deviation.source.value}): {deviation.issue}"
            )
            lines.append(
                f"   Impact: {fmt_money(deviation.impact_min)} - {fmt_money(deviation.impact_max)}"
            )
            lines.append(f"   Calculation: {deviation.calculation}")
        lines.append("")
        lines.append(deviations.summary)
        lines.append("")
        return lines

    def _overlay_section(self) -> list[str]:
        overlay = self.analysis.overlay
        if overlay is None:
            return []
        lines = self._heading(f"AI OBSERVATIONS ({overlay.status.value})")
        for text in overlay.observations.structural_observations:
            lines.append(f"  - {text}")
        for text in overlay.observations.pattern_observations:
            lines.append(f"  - {text}")
        lines.append(overlay.observations.neutral_summary)
        lines.append("")
        return lines

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the analysis to a JSON-compatible dictionary.

        Decimals are rendered as strings so cent values survive unchanged.
        """
        return self.analysis.model_dump(mode="json")

    def to_json(self, indent: int = 2) -> str:
        """
        Convert the analysis to JSON format.

        Args:
            indent: JSON indentation level

        Returns:
            JSON string representation
        """
        return json.dumps(self.to_dict(), indent=indent)

    def print_summary(self) -> None:
        """Print a brief summary to stdout."""
        print(self.to_text(include_details=False))

    def print_full(self) -> None:
        """Print the full report to stdout."""
        print(self.to_text(include_details=True))
