"""
Code Upgrade Engine.
Flags code-required items that are absent from the estimate.

Each rule is gated on a triggering trade and on the absence of an explicit
line item. Quantities come from parsed roofing areas where possible;
otherwise a fixed count from ``Heuristics`` is used and marked ASSUMED.
"""

import logging
import math
from decimal import Decimal
from typing import Any

from ..config import DEFAULT_HEURISTICS, Heuristics
from ..core.cost_baseline import CostBaseline, get_baseline
from ..core.findings import CodeUpgradeAnalysis, CodeUpgradeRisk, QuantityBasis
from ..core.models import Severity, StructuredEstimate, fmt_money, fmt_qty, to_cents
from ..core.rule_engine import EstimateRule, RuleEngine

logger = logging.getLogger(__name__)

PERMIT_TRADES = frozenset({"FRM", "FND", "RFG", "ELE", "PLM", "HVA"})
SMOKE_TRIGGER_TRADES = frozenset({"ELE", "FRM", "DRY", "CEI"})


def _mentions(estimate: StructuredEstimate, *phrases: str) -> bool:
    """True when any line description contains every phrase."""
    for item in estimate.line_items:
        text = item.description.lower()
        if all(phrase in text for phrase in phrases):
            return True
    return False


def roof_area_sf(estimate: StructuredEstimate) -> float:
    """Total roofing area in SF from RFG lines measured in SQ or SF."""
    area = 0.0
    for item in estimate.items_for("RFG"):
        if item.unit == "SQ":
            area += item.quantity * 100
        elif item.unit == "SF":
            area += item.quantity
    return area


class CodeUpgradeEngine:
    """Five independent code-requirement rules."""

    def __init__(
        self,
        baseline: CostBaseline | None = None,
        heuristics: Heuristics | None = None,
        rule_engine: RuleEngine[CodeUpgradeRisk] | None = None,
    ) -> None:
        self.baseline = baseline or get_baseline()
        self.heuristics = heuristics or DEFAULT_HEURISTICS
        self.engine: RuleEngine[CodeUpgradeRisk] = rule_engine or RuleEngine()
        self._register_rules()

    def _register_rules(self) -> None:
        """Register all code upgrade rules."""
        self.engine.add_rule(
            EstimateRule(
                rule_id="CODE-001",
                name="AFCI Protection",
                description="Electrical work without AFCI breakers",
                check=self._check_afci,
                metadata={"reference": "NEC 210.12"},
            )
        )
        self.engine.add_rule(
            EstimateRule(
                rule_id="CODE-002",
                name="Drip Edge",
                description="Roofing work without drip edge",
                check=self._check_drip_edge,
                metadata={"reference": "IRC R905.2.8.5"},
            )
        )
        self.engine.add_rule(
            EstimateRule(
                rule_id="CODE-003",
                name="Ice Barrier",
                description="Roofing work without ice and water shield",
                check=self._check_ice_water,
                metadata={"reference": "IRC R905.2.7.1"},
            )
        )
        self.engine.add_rule(
            EstimateRule(
                rule_id="CODE-004",
                name="Building Permit",
                description="Significant permit-triggering work without a permit line",
                check=self._check_permit,
                metadata={"reference": "Local building code"},
            )
        )
        self.engine.add_rule(
            EstimateRule(
                rule_id="CODE-005",
                name="Smoke Alarms",
                description="Electrical or structural work without smoke detectors",
                check=self._check_smoke_detectors,
                metadata={"reference": "IRC R314"},
            )
        )

    def analyze(self, estimate: StructuredEstimate) -> CodeUpgradeAnalysis:
        notes: list[str] = []
        risks = self.engine.execute_all(estimate, {"notes": notes})

        total_min = to_cents(sum((r.impact_min for r in risks), Decimal("0")))
        total_max = to_cents(sum((r.impact_max for r in risks), Decimal("0")))
        critical = sum(1 for r in risks if r.severity == Severity.CRITICAL)

        if not risks:
            summary = "No code-required items detected as missing."
        else:
            summary = (
                f"Identified {len(risks)} potential code-required item(s) not present in estimate."
            )
            if critical:
                summary += f" {critical} critical item(s) identified."
            summary += (
                f" Estimated code compliance exposure: {fmt_money(total_min)} - "
                f"{fmt_money(total_max)}."
            )

        logger.info("Code upgrade analysis: %d risk(s)", len(risks))
        return CodeUpgradeAnalysis(
            risks=risks,
            total_min=total_min,
            total_max=total_max,
            critical_count=critical,
            notes=notes,
            summary=summary,
            baseline=self.baseline.info,
        )

    def _risk(
        self,
        *,
        rule_id: str,
        code_item: str,
        trade_code: str,
        requirement: str,
        description: str,
        quantity: float,
        unit: str,
        basis: QuantityBasis,
        cost_key: str,
        severity: Severity,
        quantity_text: str,
    ) -> list[CodeUpgradeRisk]:
        priced = self.baseline.exposure(cost_key, quantity, unit)
        if priced is None:
            return []
        cost = self.baseline.get(cost_key)
        impact_min, impact_max = priced
        return [
            CodeUpgradeRisk(
                rule_id=rule_id,
                code_item=code_item,
                trade_code=trade_code,
                requirement=requirement,
                description=description,
                quantity=quantity,
                unit=unit,
                quantity_basis=basis,
                cost_key=cost_key,
                severity=severity,
                impact_min=impact_min,
                impact_max=impact_max,
                calculation=(
                    f"{quantity_text} × {fmt_money(cost.min)}-{fmt_money(cost.max)}/{unit} "
                    f"= {fmt_money(impact_min)}-{fmt_money(impact_max)}"
                ),
            )
        ]

    def _check_afci(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[CodeUpgradeRisk]:
        electrical = estimate.items_for("ELE")
        if not electrical or _mentions(estimate, "afci") or _mentions(estimate, "arc fault"):
            return []
        rewire = any(
            "rewire" in item.description.lower() or "wiring" in item.description.lower()
            for item in electrical
        )
        circuits = (
            self.heuristics.afci_circuits_rewire if rewire else self.heuristics.afci_circuits
        )
        return self._risk(
            rule_id="CODE-001",
            code_item="AFCI_BREAKER",
            trade_code="ELE",
            requirement="NEC 210.12 - Arc-Fault Circuit-Interrupter Protection",
            description="Electrical work in dwelling areas requires AFCI protection",
            quantity=float(circuits),
            unit="EA",
            basis=QuantityBasis.ASSUMED,
            cost_key="ELE_AFCI",
            severity=Severity.HIGH,
            quantity_text=f"{circuits} circuits (assumed)",
        )

    def _check_drip_edge(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[CodeUpgradeRisk]:
        if not estimate.has_trade("RFG") or _mentions(estimate, "drip edge"):
            return []
        area = roof_area_sf(estimate)
        if area <= 0:
            context["notes"].append(
                "Drip edge check skipped: roofing present but no SQ/SF roofing quantity"
            )
            return []
        perimeter = round(math.sqrt(area) * self.heuristics.perimeter_factor, 1)
        return self._risk(
            rule_id="CODE-002",
            code_item="DRIP_EDGE",
            trade_code="RFG",
            requirement="IRC R905.2.8.5 - Drip Edge",
            description="Roofing work requires drip edge installation",
            quantity=perimeter,
            unit="LF",
            basis=QuantityBasis.MEASURED,
            cost_key="RFG_DRIP_EDGE",
            severity=Severity.HIGH,
            quantity_text=(
                f"√{fmt_qty(area)} SF × {fmt_qty(self.heuristics.perimeter_factor)} "
                f"= {fmt_qty(perimeter)} LF"
            ),
        )

    def _check_ice_water(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[CodeUpgradeRisk]:
        if not estimate.has_trade("RFG") or _mentions(estimate, "ice", "water"):
            return []
        area = roof_area_sf(estimate)
        if area <= 0:
            context["notes"].append(
                "Ice and water shield check skipped: roofing present but no SQ/SF roofing quantity"
            )
            return []
        fraction = self.heuristics.ice_water_fraction
        shield_sf = round(area * fraction, 1)
        return self._risk(
            rule_id="CODE-003",
            code_item="ICE_WATER_SHIELD",
            trade_code="RFG",
            requirement="IRC R905.2.7.1 - Ice Barrier",
            description="Roofing work in cold climates requires ice and water shield",
            quantity=shield_sf,
            unit="SF",
            basis=QuantityBasis.MEASURED,
            cost_key="RFG_ICE_WATER",
            severity=Severity.HIGH,
            quantity_text=f"{fmt_qty(area)} SF × {fmt_qty(fraction * 100)}% = {fmt_qty(shield_sf)} SF",
        )

    def _check_permit(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[CodeUpgradeRisk]:
        if estimate.has_trade("PER") or _mentions(estimate, "permit"):
            return []
        if not (estimate.trade_codes & PERMIT_TRADES):
            return []
        threshold = Decimal(str(self.heuristics.permit_rcv_threshold))
        if estimate.totals.rcv <= threshold:
            return []
        return self._risk(
            rule_id="CODE-004",
            code_item="PERMIT",
            trade_code="GEN",
            requirement="Local Building Code - Permit Requirements",
            description=(
                "Structural, electrical, plumbing or HVAC work over "
                f"{fmt_money(threshold)} typically requires a building permit"
            ),
            quantity=1.0,
            unit="EA",
            basis=QuantityBasis.ASSUMED,
            cost_key="PER_BUILDING",
            severity=Severity.CRITICAL,
            quantity_text="1 permit",
        )

    def _check_smoke_detectors(
        self, estimate: StructuredEstimate, context: dict[str, Any]
    ) -> list[CodeUpgradeRisk]:
        if not (estimate.trade_codes & SMOKE_TRIGGER_TRADES):
            return []
        if _mentions(estimate, "smoke", "detector"):
            return []
        detectors = self.heuristics.smoke_detectors
        return self._risk(
            rule_id="CODE-005",
            code_item="SMOKE_DETECTOR",
            trade_code="ELE",
            requirement="IRC R314 - Smoke Alarms",
            description=(
                "Structural or electrical work may trigger an updated smoke detector system"
            ),
            quantity=float(detectors),
            unit="EA",
            basis=QuantityBasis.ASSUMED,
            cost_key="ELE_SMOKE_DETECTOR",
            severity=Severity.MODERATE,
            quantity_text=f"{detectors} detectors (assumed)",
        )


def analyze_code_upgrades(
    estimate: StructuredEstimate,
    baseline: CostBaseline | None = None,
    heuristics: Heuristics | None = None,
) -> CodeUpgradeAnalysis:
    """Convenience wrapper for a one-off code upgrade analysis."""
    return CodeUpgradeEngine(baseline=baseline, heuristics=heuristics).analyze(estimate)
