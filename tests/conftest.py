"""
Shared fixtures for the Estimate Integrity Engine tests.
"""

from decimal import Decimal

import pytest

from estimate_engine.core.cost_baseline import get_baseline
from estimate_engine.core.models import (
    ActionType,
    ConfidenceLabel,
    EstimateFormat,
    EstimateTotals,
    LineItem,
    StructuredEstimate,
)
from estimate_engine.core.trades import TRADE_CODES, get_classifier

TAB_ESTIMATE = "\n".join(
    [
        "DRY\tRemove drywall\t200\tSF\t3.50\t700.00\t630.00",
        "PNT\tPaint walls\t300\tSF\t1.50\t450.00\t450.00",
        "FLR\tInstall flooring\t100\tSF\t6.00\t600.00\t540.00",
    ]
)

UNRECOGNIZED_TEXT = "\n".join(
    [
        "Inspection-notes-for-the-property-at-the-north-end",
        "Homeowner-reported-staining-on-the-living-room-ceiling",
        "Adjuster-photographed-all-elevations-and-the-attic-space",
        "Follow-up-visit-scheduled-with-the-mitigation-contractor",
    ]
)


def make_item(
    trade_code: str,
    description: str,
    quantity: float,
    unit: str,
    rcv: str | Decimal,
    acv: str | Decimal | None = None,
    line_number: int = 1,
    action: ActionType | None = None,
) -> LineItem:
    """Build a line item the way the parser would classify it."""
    classifier = get_classifier()
    return LineItem(
        line_number=line_number,
        trade_code=trade_code,
        trade_name=TRADE_CODES.get(trade_code, "Unknown"),
        description=description,
        quantity=quantity,
        unit=unit,
        rcv=Decimal(str(rcv)),
        acv=Decimal(str(acv)) if acv is not None else None,
        action=action or classifier.classify_action(description),
    )


def make_estimate(rows: list[tuple]) -> StructuredEstimate:
    """Build a HIGH-confidence estimate from (trade, description, qty, unit, rcv) rows."""
    items = [make_item(*row, line_number=number) for number, row in enumerate(rows, start=1)]
    return StructuredEstimate(
        line_items=items,
        totals=EstimateTotals.from_items(items),
        format=EstimateFormat.TAB_SEPARATED,
        confidence=ConfidenceLabel.HIGH,
        validation_score=100,
        scanned_lines=len(items),
        parsed_count=len(items),
    )


@pytest.fixture
def tab_estimate_text() -> str:
    """The three-line tab-separated estimate."""
    return TAB_ESTIMATE


@pytest.fixture
def unrecognized_text() -> str:
    """Text with no tabs, no column alignment and no trade codes."""
    return UNRECOGNIZED_TEXT


@pytest.fixture
def baseline():
    """The bundled cost baseline."""
    return get_baseline()


@pytest.fixture
def rooms() -> list[dict]:
    """One 20 x 15 x 8 ft room."""
    return [{"name": "Living Room", "length": 20, "width": 15, "height": 8}]


@pytest.fixture
def estimate_factory():
    """Factory building StructuredEstimate objects from row tuples."""
    return make_estimate
