"""
Core data models for the Estimate Integrity Engine.
Uses Pydantic for validation and serialization.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

CENTS = Decimal("0.01")

TAB_HEADER = "CODE\tDESCRIPTION\tQTY\tUNIT\tPRICE\tRCV\tACV"


def to_cents(value: Decimal | float | int) -> Decimal:
    """Quantize a money value to cents using half-up rounding."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def round_half_up(value: float | Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def fmt_qty(value: float | Decimal) -> str:
    """Format a quantity for calculation traces: 120.0 -> '120', 52.154 -> '52.15'."""
    text = f"{float(value):,.2f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


def fmt_money(value: Decimal | float) -> str:
    return f"${value:,.2f}"


class ActionType(str, Enum):
    """Work verb resolved for a line item."""

    REMOVE = "REMOVE"
    REPLACE = "REPLACE"
    INSTALL = "INSTALL"
    REPAIR = "REPAIR"
    CLEAN = "CLEAN"
    OTHER = "OTHER"


class EstimateFormat(str, Enum):
    """Layout families the format detector can recognize."""

    TAB_SEPARATED = "tab_separated"
    FIXED_WIDTH = "fixed_width"
    SPACE_SEPARATED = "space_separated_with_codes"
    SPACE_SEPARATED_NO_CODES = "space_separated_without_codes"
    UNKNOWN = "unknown"


class SeparatorKind(str, Enum):
    TAB = "TAB"
    FIXED = "FIXED"
    SPACE = "SPACE"


class ConfidenceLabel(str, Enum):
    """Overall parse confidence label."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    FAILED = "FAILED"

    @property
    def rank(self) -> int:
        return {"FAILED": 0, "LOW": 1, "MEDIUM": 2, "HIGH": 3}[self.value]


class Severity(str, Enum):
    """Severity levels for findings and deviations."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MODERATE = "MODERATE"
    LOW = "LOW"
    MINIMAL = "MINIMAL"


class FindingConfidence(str, Enum):
    """How firmly a finding rests on measured quantities."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class CeilingType(str, Enum):
    FLAT = "FLAT"
    VAULTED = "VAULTED"
    CATHEDRAL = "CATHEDRAL"
    TRAY = "TRAY"
    COFFERED = "COFFERED"


class ScopeRule(str, Enum):
    """Scope of removal applied to room geometry or required by a directive."""

    FULL_HEIGHT = "FULL_HEIGHT"
    CUT_2FT = "2FT_CUT"
    CUT_4FT = "4FT_CUT"
    CUT_6FT = "6FT_CUT"
    CEILING_ONLY = "CEILING_ONLY"
    FLOOR_ONLY = "FLOOR_ONLY"
    SPECIFIC_AREA = "SPECIFIC_AREA"


class LineItem(BaseModel):
    """One parsed estimate row."""

    line_number: int = Field(ge=0, description="1-based source line number")
    raw_text: str = ""
    trade_code: str = "UNK"
    trade_name: str = "Unknown"
    description: str
    quantity: float = Field(default=1.0, ge=0)
    unit: str = "EA"
    unit_price: Decimal = Decimal("0")
    rcv: Decimal
    acv: Decimal | None = None
    depreciation: Decimal | None = None
    action: ActionType = ActionType.OTHER
    overhead: bool = False
    profit: bool = False
    confidence: float = Field(default=1.0, ge=0, le=1)

    def model_post_init(self, __context: Any) -> None:
        """Default ACV to RCV and derive depreciation."""
        if self.acv is None:
            self.acv = self.rcv
        self.depreciation = self.rcv - self.acv

    @property
    def is_removal(self) -> bool:
        return self.action == ActionType.REMOVE

    @property
    def is_rebuild(self) -> bool:
        return self.action in (ActionType.REPLACE, ActionType.INSTALL)


class ColumnBoundary(BaseModel):
    """Position of one semantic field.

    For fixed-width layouts ``start``/``end`` are character offsets (``end`` of
    None runs to end of line). For tab layouts they are token indexes. Space
    layouts classify tokens individually and leave ``start`` unset.
    """

    name: str
    start: int | None = None
    end: int | None = None
    required: bool = False


class ColumnLayout(BaseModel):
    """Inferred column structure for one estimate."""

    format: EstimateFormat
    separator: SeparatorKind
    columns: dict[str, ColumnBoundary]
    confidence: float = Field(ge=0, le=1)
    evidence: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_core_fields(self) -> "ColumnLayout":
        missing = [name for name in ("description", "rcv") if name not in self.columns]
        if missing:
            raise ValueError(f"layout is missing required field(s): {', '.join(missing)}")
        return self

    def has(self, name: str) -> bool:
        return name in self.columns


class EstimateTotals(BaseModel):
    """Aggregate money totals, exact sums rounded to cents."""

    rcv: Decimal = Decimal("0.00")
    acv: Decimal = Decimal("0.00")
    depreciation: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    overhead: Decimal = Decimal("0.00")
    profit: Decimal = Decimal("0.00")

    @classmethod
    def from_items(cls, items: list[LineItem]) -> "EstimateTotals":
        zero = Decimal("0")
        return cls(
            rcv=to_cents(sum((i.rcv for i in items), zero)),
            acv=to_cents(sum((i.acv or zero for i in items), zero)),
            depreciation=to_cents(sum((i.depreciation or zero for i in items), zero)),
            tax=to_cents(zero),
            overhead=to_cents(sum((i.rcv for i in items if i.overhead), zero)),
            profit=to_cents(sum((i.rcv for i in items if i.profit), zero)),
        )


class StructuredEstimate(BaseModel):
    """The full parsed estimate document."""

    line_items: list[LineItem] = Field(default_factory=list)
    totals: EstimateTotals = Field(default_factory=EstimateTotals)
    format: EstimateFormat = EstimateFormat.UNKNOWN
    layout: ColumnLayout | None = None
    confidence: ConfidenceLabel = ConfidenceLabel.FAILED
    validation_score: int = Field(default=0, ge=0, le=100)
    warnings: list[str] = Field(default_factory=list)
    scanned_lines: int = 0
    parsed_count: int = 0
    rejected_count: int = 0
    avg_line_confidence: float = 0.0

    @property
    def parse_confidence(self) -> float:
        """Validation score as a 0-1 fraction."""
        return self.validation_score / 100

    @property
    def trade_codes(self) -> set[str]:
        return {item.trade_code for item in self.line_items}

    def has_trade(self, *codes: str) -> bool:
        present = self.trade_codes
        return any(code in present for code in codes)

    def items_for(self, *codes: str) -> list[LineItem]:
        return [item for item in self.line_items if item.trade_code in codes]

    def to_tab_text(self) -> str:
        """
        Re-serialize line items as tab-separated rows in detector field order.

        A header row leads the output; it counts toward format detection and
        is skipped by the parser, so short estimates still re-parse.
        """
        rows = [TAB_HEADER]
        for item in self.line_items:
            rows.append(
                "\t".join(
                    [
                        item.trade_code,
                        item.description,
                        f"{item.quantity:.4f}".rstrip("0").rstrip("."),
                        item.unit,
                        f"{item.unit_price:.2f}",
                        f"{item.rcv:.2f}",
                        f"{item.acv:.2f}",
                    ]
                )
            )
        return "\n".join(rows)


class Room(BaseModel):
    """One measured space, dimensions in feet."""

    name: str = ""
    length: float
    width: float
    height: float
    ceiling_type: CeilingType = CeilingType.FLAT


class RoomQuantities(BaseModel):
    """Geometry-derived quantities for one room after the scope rule."""

    model_config = ConfigDict(frozen=True)

    name: str
    floor_sf: float
    ceiling_sf: float
    perimeter_lf: float
    wall_sf: float
    height: float


class ExpectedQuantities(BaseModel):
    """Expected per-trade quantities derived from a set of rooms."""

    model_config = ConfigDict(frozen=True)

    scope_rule: ScopeRule
    wall_multiplier: float
    ceiling_multiplier: float
    rooms: tuple[RoomQuantities, ...]
    total_floor_sf: float
    total_ceiling_sf: float
    total_perimeter_lf: float
    total_wall_sf: float
    drywall_sf: float
    paint_sf: float
    flooring_sf: float
    baseboard_lf: float
    ceiling_sf: float
    insulation_sf: float


class CostRange(BaseModel):
    """Baseline per-unit cost range."""

    model_config = ConfigDict(frozen=True)

    min: Decimal = Field(ge=0)
    max: Decimal = Field(ge=0)
    unit: str
    description: str = ""

    @model_validator(mode="after")
    def _ordered(self) -> "CostRange":
        if self.min > self.max:
            raise ValueError(f"cost range min {self.min} exceeds max {self.max}")
        return self

    def label(self) -> str:
        return f"${self.min:,.2f}-${self.max:,.2f}/{self.unit}"


class BaselineInfo(BaseModel):
    """Version stamp of the cost baseline used for an analysis."""

    model_config = ConfigDict(frozen=True)

    version: str
    effective_date: date
    region: str
