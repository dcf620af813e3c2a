"""
Loss Expectation Engine.
Infers loss type and severity from which trades are present and how much
work they carry, then checks the estimate against the trades such a loss
usually needs.
"""

import logging
from types import MappingProxyType

from ..core.findings import ExpectedTrade, LossExpectation, LossSeverity, LossType
from ..core.models import FindingConfidence, StructuredEstimate, round_half_up
from ..core.trades import TRADE_CODES

logger = logging.getLogger(__name__)

STRUCTURAL_TRADES = frozenset({"FRM", "FND", "STL", "CON"})
CRITICAL_PROBABILITY = 0.7

# (trade code, probability, reason)
_TABLES: dict[str, tuple[tuple[str, float, str], ...]] = {
    "WATER_LEVEL_1": (
        ("MIT", 0.90, "Water extraction required"),
        ("CLN", 0.85, "Cleaning and deodorizing"),
        ("EQP", 0.80, "Drying equipment"),
        ("FLR", 0.60, "Carpet/pad common"),
        ("DRY", 0.35, "Lower sections if saturated"),
        ("PNT", 0.35, "If drywall affected"),
    ),
    "WATER_LEVEL_2": (
        ("MIT", 0.98, "Required for gray water"),
        ("DRY", 0.85, "2-4 foot flood cut typical"),
        ("INS", 0.80, "Exterior walls affected"),
        ("PNT", 0.85, "After drywall"),
        ("FLR", 0.90, "Full replacement"),
        ("MLD", 0.75, "Baseboard affected"),
        ("CLN", 0.95, "Antimicrobial"),
        ("EQP", 0.90, "Extended drying"),
    ),
    "WATER_CATEGORY_3": (
        ("MIT", 1.00, "Mandatory for category 3"),
        ("DEM", 0.95, "Extensive removal"),
        ("DRY", 0.98, "Full height removal"),
        ("INS", 0.95, "Replace if wet"),
        ("FLR", 0.98, "Complete replacement"),
        ("PNT", 0.98, "Full repaint"),
        ("MLD", 0.90, "All trim affected"),
        ("CAB", 0.75, "Kitchen/bath likely"),
        ("ELE", 0.70, "Below flood line"),
        ("HAU", 0.95, "Major debris"),
    ),
    "FIRE_LIGHT": (
        ("CLN", 0.98, "Smoke/soot removal"),
        ("PNT", 0.85, "Seal smoke odor"),
        ("FLR", 0.50, "Carpet cleaning"),
        ("HVA", 0.60, "Duct cleaning"),
    ),
    "FIRE_MODERATE": (
        ("DEM", 0.90, "Remove burned materials"),
        ("FRM", 0.70, "Structural repairs"),
        ("DRY", 0.95, "After framing"),
        ("INS", 0.85, "Fire/water damage"),
        ("ELE", 0.90, "Wiring replacement"),
        ("PNT", 0.95, "Full repaint"),
        ("FLR", 0.85, "Replacement"),
        ("MLD", 0.80, "Trim replacement"),
        ("CLN", 0.95, "Smoke remediation"),
        ("HAU", 0.90, "Debris removal"),
    ),
    "FIRE_HEAVY": (
        ("DEM", 1.00, "Complete gutting"),
        ("FRM", 0.95, "Structural rebuild"),
        ("RFG", 0.90, "Full replacement"),
        ("DRY", 1.00, "Complete replacement"),
        ("INS", 1.00, "Full replacement"),
        ("ELE", 0.98, "Complete rewiring"),
        ("PLM", 0.85, "Extensive repairs"),
        ("HVA", 0.90, "System replacement"),
        ("PNT", 1.00, "Full interior/exterior"),
        ("FLR", 0.98, "Complete replacement"),
        ("CAB", 0.95, "Full rebuild"),
        ("HAU", 1.00, "Major debris"),
        ("PER", 0.95, "Major reconstruction"),
    ),
    "WIND_MINOR": (
        ("RFG", 0.95, "Primary damage"),
        ("SID", 0.40, "Wind-driven debris"),
        ("WIN", 0.30, "Broken by debris"),
    ),
    "WIND_MAJOR": (
        ("RFG", 1.00, "Full replacement"),
        ("FRM", 0.70, "Structural repairs"),
        ("SID", 0.85, "Extensive damage"),
        ("WIN", 0.70, "Multiple breakages"),
        ("DRY", 0.80, "Water intrusion"),
        ("INS", 0.75, "If wet"),
        ("PNT", 0.80, "Interior repairs"),
        ("DEM", 0.70, "Remove damaged"),
        ("HAU", 0.70, "Debris removal"),
        ("PER", 0.80, "Structural work"),
    ),
}

EXPECTED_TRADES = MappingProxyType(_TABLES)


def infer_loss_type(present: set[str]) -> LossType:
    """Infer the loss type from which trades appear on the estimate."""
    if "MIT" in present or {"CLN", "EQP"} <= present:
        return LossType.WATER
    if {"DEM", "FRM", "HAU"} <= present:
        return LossType.FIRE
    if "RFG" in present:
        # roofing alone still reads as wind
        return LossType.WIND
    if "CLN" in present:
        return LossType.WATER
    return LossType.OTHER


def infer_severity(estimate: StructuredEstimate, loss_type: LossType) -> LossSeverity:
    """Infer severity from trade count, quantity scale and structural trades."""
    present = estimate.trade_codes
    trade_count = len(present)
    structural = bool(present & STRUCTURAL_TRADES)
    items = estimate.line_items
    avg_quantity = sum(item.quantity for item in items) / max(len(items), 1)

    if loss_type == LossType.WATER:
        drywall_sf = sum(item.quantity for item in estimate.items_for("DRY") if item.unit == "SF")
        if "DEM" in present or drywall_sf > 500 or structural:
            return LossSeverity.CATEGORY_3
        if drywall_sf > 200 or trade_count > 8:
            return LossSeverity.LEVEL_2
        return LossSeverity.LEVEL_1
    if loss_type == LossType.FIRE:
        if structural or trade_count > 12:
            return LossSeverity.HEAVY
        if trade_count > 7 or avg_quantity > 200:
            return LossSeverity.MODERATE
        return LossSeverity.LIGHT
    if loss_type == LossType.WIND:
        if structural or trade_count > 8:
            return LossSeverity.MAJOR
        return LossSeverity.MINOR
    return LossSeverity.UNDETERMINED


def _confidence(estimate: StructuredEstimate) -> FindingConfidence:
    count = len(estimate.line_items)
    if estimate.parse_confidence > 0.90 and count > 15:
        return FindingConfidence.HIGH
    if estimate.parse_confidence > 0.85 and count > 8:
        return FindingConfidence.MEDIUM
    return FindingConfidence.LOW


class LossExpectationEngine:
    """Compares present trades with the expected-trade table for the inferred loss."""

    def __init__(self, tables=None):
        self.tables = tables or EXPECTED_TRADES

    def analyze(self, estimate: StructuredEstimate) -> LossExpectation:
        present = estimate.trade_codes
        loss_type = infer_loss_type(present)
        severity = infer_severity(estimate, loss_type)
        key = f"{loss_type.value}_{severity.value}"

        expected = [
            ExpectedTrade(
                trade_code=code,
                trade_name=TRADE_CODES.get(code, code),
                probability=probability,
                reason=reason,
                present=code in present,
            )
            for code, probability, reason in self.tables.get(key, ())
        ]
        missing = [
            trade for trade in expected
            if trade.probability > CRITICAL_PROBABILITY and not trade.present
        ]

        total = sum(trade.probability for trade in expected)
        matched = sum(trade.probability for trade in expected if trade.present)
        score = round_half_up(100 * matched / total) if total > 0 else 100

        items = estimate.line_items
        total_quantity = sum(item.quantity for item in items)
        inference = {
            "trade_count": len(present),
            "total_quantity": round(total_quantity, 2),
            "avg_quantity_per_item": round(total_quantity / max(len(items), 1), 2),
            "has_structural_trades": bool(present & STRUCTURAL_TRADES),
            "has_mitigation": "MIT" in present,
        }

        if not expected:
            summary = f"Loss type {loss_type.value}: no expected-trade profile applies."
        else:
            summary = (
                f"Inferred {loss_type.value} loss ({severity.value}); "
                f"{len(expected) - sum(1 for t in expected if not t.present)} of "
                f"{len(expected)} expected trades present, probability score {score}."
            )
            if missing:
                names = ", ".join(trade.trade_name for trade in missing)
                summary += f" Missing high-probability trades: {names}."

        logger.info("Loss expectation: %s, score %d, %d missing", key, score, len(missing))
        return LossExpectation(
            loss_type=loss_type,
            severity=severity,
            expected_trades=expected,
            missing_critical_trades=missing,
            probability_score=score,
            confidence=_confidence(estimate),
            inference=inference,
            summary=summary,
        )


def calculate_loss_expectation(estimate: StructuredEstimate) -> LossExpectation:
    """Convenience wrapper for a one-off loss-expectation analysis."""
    return LossExpectationEngine().analyze(estimate)
