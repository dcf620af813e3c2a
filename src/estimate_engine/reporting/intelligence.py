"""
Claim Intelligence Aggregator.
Joins the engine outputs into one report with a consolidated risk score.
"""

from decimal import Decimal

from ..core.findings import (
    ClaimIntelligenceReport,
    CodeUpgradeAnalysis,
    CompletenessAnalysis,
    DeviationAnalysis,
    DeviationSource,
    ExposureAnalysis,
    LossExpectation,
    RiskTier,
)
from ..core.models import ExpectedQuantities, StructuredEstimate, fmt_money, round_half_up, to_cents

HIGH_RISK_THRESHOLD = 70
MODERATE_RISK_THRESHOLD = 40


def _percent_of_rcv(low: Decimal, high: Decimal, rcv: Decimal) -> float:
    if rcv <= 0:
        return 0.0
    return float((low + high) / 2 / rcv * 100)


def consolidated_risk_score(
    estimate: StructuredEstimate,
    exposure: ExposureAnalysis,
    completeness: CompletenessAnalysis,
    code: CodeUpgradeAnalysis,
    deviation: DeviationAnalysis | None = None,
) -> int:
    """Weighted 0-100 risk score across every engine."""
    rcv = estimate.totals.rcv
    score = (100 - completeness.structural_integrity_score) * 0.25
    score += min(_percent_of_rcv(exposure.total_min, exposure.total_max, rcv), 50) * 0.30
    if deviation is not None:
        score += min(_percent_of_rcv(deviation.total_min, deviation.total_max, rcv), 50) * 0.25
    score += min(_percent_of_rcv(code.total_min, code.total_max, rcv), 30) * 0.10

    score += 5 * completeness.critical_issues
    if deviation is not None:
        score += 8 * deviation.critical_count
    score += 6 * code.critical_count
    return max(0, min(100, round_half_up(score)))


def risk_tier(score: int) -> RiskTier:
    if score >= HIGH_RISK_THRESHOLD:
        return RiskTier.HIGH
    if score >= MODERATE_RISK_THRESHOLD:
        return RiskTier.MODERATE
    return RiskTier.LOW


def generate_claim_intelligence(
    estimate: StructuredEstimate,
    exposure: ExposureAnalysis,
    completeness: CompletenessAnalysis,
    loss: LossExpectation,
    code: CodeUpgradeAnalysis,
    deviation: DeviationAnalysis | None = None,
    expected: ExpectedQuantities | None = None,
    report_supplied: bool = False,
    engines: list[str] | None = None,
) -> ClaimIntelligenceReport:
    """
    Combine engine outputs into a ClaimIntelligenceReport.

    Args:
        estimate: Parsed estimate
        exposure: Exposure engine output
        completeness: Completeness engine output
        loss: Loss-expectation engine output
        code: Code-upgrade engine output
        deviation: Deviation engine output, when directives or rooms were supplied
        expected: Dimension engine output, when rooms were supplied
        report_supplied: Whether expert-report directives were supplied
        engines: Engines that actually ran; derived from the inputs when omitted

    Returns:
        The joined report
    """
    score = consolidated_risk_score(estimate, exposure, completeness, code, deviation)
    tier = risk_tier(score)

    zero = Decimal("0")
    dev_min = deviation.total_min if deviation else zero
    dev_max = deviation.total_max if deviation else zero
    total_min = to_cents(exposure.total_min + dev_min + code.total_min)
    total_max = to_cents(exposure.total_max + dev_max + code.total_max)

    deviations = deviation.deviations if deviation else []
    report_count = sum(
        1 for d in deviations if d.source in (DeviationSource.REPORT, DeviationSource.BOTH)
    )
    dimension_count = sum(
        1 for d in deviations if d.source in (DeviationSource.DIMENSION, DeviationSource.BOTH)
    )

    if engines is None:
        engines = [
            "structural-parser",
            "exposure-engine",
            "completeness-engine",
            "loss-expectation-engine",
            "code-upgrade-engine",
        ]
        if expected is not None:
            engines.append("dimension-engine")
        if report_supplied:
            engines.append("report-directives")
        if deviation is not None:
            engines.append("deviation-engine")

    parts = [
        f"Analyzed estimate totaling {fmt_money(estimate.totals.rcv)} RCV with "
        f"{len(estimate.line_items)} line items.",
        f"Structural integrity score: {completeness.structural_integrity_score}/100.",
    ]
    if total_min > 0 or total_max > 0:
        parts.append(
            f"Total identified exposure: {fmt_money(total_min)} - {fmt_money(total_max)}."
        )
    if deviations:
        parts.append(
            f"{len(deviations)} deviation(s) identified from expert report or dimension analysis."
        )
    if code.risks:
        parts.append(f"{len(code.risks)} code compliance item(s) flagged.")
    if loss.missing_critical_trades:
        parts.append(
            f"{len(loss.missing_critical_trades)} high-probability trade(s) absent for the "
            f"inferred {loss.loss_type.value} loss."
        )
    parts.append(f"Consolidated risk score: {score}/100 ({tier.value} RISK).")

    return ClaimIntelligenceReport(
        structural_integrity_score=completeness.structural_integrity_score,
        exposure_min=exposure.total_min,
        exposure_max=exposure.total_max,
        deviation_exposure_min=deviation.total_min if deviation else None,
        deviation_exposure_max=deviation.total_max if deviation else None,
        code_upgrade_min=code.total_min,
        code_upgrade_max=code.total_max,
        code_upgrade_flags=len(code.risks),
        report_deviations=report_count,
        dimension_variances=dimension_count,
        critical_completeness_issues=completeness.critical_issues,
        critical_deviations=deviation.critical_count if deviation else 0,
        critical_code_risks=code.critical_count,
        consolidated_risk_score=score,
        risk_tier=tier,
        executive_summary=" ".join(parts),
        total_rcv=estimate.totals.rcv,
        total_acv=estimate.totals.acv,
        total_exposure_min=total_min,
        total_exposure_max=total_max,
        line_item_count=len(estimate.line_items),
        engines_used=engines,
        baseline=exposure.baseline,
    )
