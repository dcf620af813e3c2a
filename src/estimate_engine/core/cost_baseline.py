"""
Versioned cost baseline for exposure arithmetic.

The bundled table is a conservative national range per unit, keyed by
``{TRADE}_{ITEM_TYPE}``. A baseline is immutable once built; callers that
need regional pricing load a complete replacement table with
``CostBaseline.from_json``.
"""

import json
import logging
from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from ..exceptions import CostBaselineError
from .models import BaselineInfo, CostRange, to_cents

logger = logging.getLogger(__name__)

BASELINE_VERSION = "2026.02"
BASELINE_EFFECTIVE_DATE = date(2026, 2, 20)
BASELINE_REGION = "US-NATIONAL"

# key: (min, max, unit, description)
_DEFAULT_ENTRIES: dict[str, tuple[str, str, str, str]] = {
    # Drywall
    "DRY_REMOVE": ("1.00", "2.50", "SF", "Drywall tear-out"),
    "DRY_REPLACE_1/2": ("2.50", "5.00", "SF", "1/2 in. drywall hang, tape, finish"),
    "DRY_REPLACE_5/8": ("2.75", "5.50", "SF", "5/8 in. drywall hang, tape, finish"),
    "DRY_REPAIR": ("1.50", "3.00", "SF", "Drywall patch"),
    "DRY_CEILING": ("3.00", "6.00", "SF", "Ceiling drywall"),
    # Painting
    "PNT_INTERIOR_WALL": ("1.50", "3.50", "SF", "Paint interior walls"),
    "PNT_INTERIOR_CEILING": ("1.75", "3.75", "SF", "Paint interior ceilings"),
    "PNT_EXTERIOR": ("2.00", "4.50", "SF", "Paint exterior surfaces"),
    "PNT_TRIM": ("2.50", "5.00", "LF", "Paint trim"),
    "PNT_PRIMER": ("0.75", "1.50", "SF", "Primer / sealer coat"),
    # Flooring
    "FLR_REMOVE": ("0.50", "1.50", "SF", "Floor covering tear-out"),
    "FLR_INSTALL": ("3.00", "8.00", "SF", "Floor covering, blended carpet/vinyl"),
    "CRP_INSTALL": ("3.00", "8.00", "SF", "Carpet and pad"),
    "VCT_INSTALL": ("4.00", "10.00", "SF", "Vinyl plank or tile"),
    "TIL_INSTALL": ("8.00", "20.00", "SF", "Ceramic or porcelain tile"),
    "WDP_INSTALL": ("10.00", "25.00", "SF", "Hardwood flooring"),
    # Insulation
    "INS_BATT_R13": ("1.00", "2.50", "SF", "Batt insulation R-13"),
    "INS_BATT_R19": ("1.25", "2.75", "SF", "Batt insulation R-19"),
    "INS_BATT_R30": ("1.50", "3.00", "SF", "Batt insulation R-30"),
    "INS_BLOWN": ("1.50", "3.00", "SF", "Blown-in insulation"),
    # Roofing
    "RFG_REMOVE_SHINGLES": ("50.00", "100.00", "SQ", "Shingle tear-off"),
    "RFG_INSTALL_SHINGLES": ("250.00", "450.00", "SQ", "Composition shingles"),
    "RFG_INSTALL_PREMIUM": ("350.00", "650.00", "SQ", "Architectural / premium shingles"),
    "RFG_DRIP_EDGE": ("3.00", "6.00", "LF", "Drip edge"),
    "RFG_ICE_WATER": ("4.00", "8.00", "SF", "Ice and water shield"),
    "RFG_UNDERLAYMENT": ("20.00", "40.00", "SQ", "Synthetic underlayment"),
    "RFG_DECKING": ("3.00", "6.00", "SF", "Roof decking / sheathing"),
    # Molding and trim
    "MLD_BASEBOARD": ("3.00", "8.00", "LF", "Baseboard"),
    "MLD_CROWN": ("5.00", "12.00", "LF", "Crown molding"),
    "MLD_CASING": ("4.00", "10.00", "LF", "Door / window casing"),
    "MLD_CHAIR_RAIL": ("4.00", "9.00", "LF", "Chair rail"),
    # Cabinets and countertops
    "CAB_REMOVE": ("15.00", "30.00", "LF", "Cabinet removal"),
    "CAB_BASE_STOCK": ("150.00", "350.00", "LF", "Base cabinets, stock"),
    "CAB_BASE_CUSTOM": ("300.00", "600.00", "LF", "Base cabinets, custom"),
    "CAB_WALL_STOCK": ("120.00", "300.00", "LF", "Wall cabinets, stock"),
    "CAB_WALL_CUSTOM": ("250.00", "500.00", "LF", "Wall cabinets, custom"),
    "CTR_LAMINATE": ("25.00", "50.00", "SF", "Laminate countertop"),
    "CTR_GRANITE": ("60.00", "150.00", "SF", "Granite countertop"),
    "CTR_QUARTZ": ("70.00", "180.00", "SF", "Quartz countertop"),
    # Electrical
    "ELE_OUTLET": ("75.00", "150.00", "EA", "Receptacle"),
    "ELE_SWITCH": ("75.00", "150.00", "EA", "Switch"),
    "ELE_AFCI": ("150.00", "300.00", "EA", "AFCI breaker"),
    "ELE_GFCI": ("100.00", "200.00", "EA", "GFCI receptacle"),
    "ELE_SMOKE_DETECTOR": ("100.00", "200.00", "EA", "Hardwired smoke detector"),
    "ELE_CO_DETECTOR": ("100.00", "200.00", "EA", "Carbon monoxide detector"),
    "ELE_REWIRE_ROOM": ("800.00", "2000.00", "EA", "Rewire one room"),
    # Plumbing
    "PLM_FIXTURE": ("200.00", "800.00", "EA", "Plumbing fixture"),
    "PLM_WATER_HEATER": ("800.00", "2000.00", "EA", "Water heater"),
    "PLM_DETACH_RESET": ("100.00", "250.00", "EA", "Detach and reset fixture"),
    # Framing
    "FRM_WALL_REPAIR": ("15.00", "30.00", "LF", "Wall framing repair"),
    "FRM_CEILING_JOIST": ("20.00", "40.00", "LF", "Ceiling joist"),
    "FRM_STRUCTURAL": ("25.00", "50.00", "LF", "Structural framing"),
    # Siding
    "SID_VINYL": ("5.00", "12.00", "SF", "Vinyl siding"),
    "SID_FIBER_CEMENT": ("8.00", "18.00", "SF", "Fiber cement siding"),
    "SID_WOOD": ("10.00", "22.00", "SF", "Wood siding"),
    # Windows and doors
    "WIN_STANDARD": ("400.00", "800.00", "EA", "Standard window"),
    "WIN_LARGE": ("600.00", "1200.00", "EA", "Large window"),
    "DOR_INTERIOR": ("300.00", "700.00", "EA", "Interior door"),
    "DOR_EXTERIOR": ("600.00", "1500.00", "EA", "Exterior door"),
    # Demolition and cleanup
    "DEM_INTERIOR": ("1.50", "4.00", "SF", "Interior demolition"),
    "HAU_DEBRIS": ("300.00", "1000.00", "LS", "Debris haul-away"),
    "CLN_STANDARD": ("0.50", "1.50", "SF", "Standard cleaning"),
    "CLN_ANTIMICROBIAL": ("1.00", "2.50", "SF", "Antimicrobial application"),
    # Mitigation
    "MIT_WATER": ("1500.00", "4000.00", "LS", "Water mitigation"),
    "EQP_DRYING": ("300.00", "1000.00", "LS", "Drying equipment"),
    # Permits and code
    "PER_BUILDING": ("200.00", "1000.00", "EA", "Building permit"),
    "PER_ELECTRICAL": ("100.00", "400.00", "EA", "Electrical permit"),
    "PER_PLUMBING": ("100.00", "400.00", "EA", "Plumbing permit"),
    "COD_UPGRADE": ("500.00", "2000.00", "LS", "General code upgrade allowance"),
}


class CostBaseline:
    """
    Immutable lookup of per-unit cost ranges with a version stamp.
    """

    def __init__(
        self,
        entries: Mapping[str, CostRange],
        version: str,
        effective_date: date,
        region: str,
    ) -> None:
        self._entries = MappingProxyType(dict(entries))
        self.info = BaselineInfo(version=version, effective_date=effective_date, region=region)

    @property
    def entries(self) -> Mapping[str, CostRange]:
        return self._entries

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CostRange:
        """Return the range for an exact key or raise CostBaselineError."""
        try:
            return self._entries[key]
        except KeyError:
            raise CostBaselineError(
                f"No baseline entry '{key}'",
                details={"key": key, "version": self.info.version},
            ) from None

    def range_for(self, trade_code: str, item_type: str = "STANDARD") -> CostRange | None:
        """Look up ``{trade}_{item_type}``, falling back to the first entry for the trade."""
        exact = self._entries.get(f"{trade_code}_{item_type}")
        if exact is not None:
            return exact
        prefix = f"{trade_code}_"
        for key, cost in self._entries.items():
            if key.startswith(prefix):
                return cost
        return None

    def exposure(self, key: str, quantity: float, unit: str) -> tuple[Decimal, Decimal] | None:
        """
        Multiply a quantity by the range for ``key``.

        Returns a cents-rounded (min, max) pair, or None when the quantity's
        unit does not match the baseline unit.
        """
        cost = self.get(key)
        if cost.unit != unit:
            logger.warning(
                "Unit mismatch for %s: baseline %s, quantity %s", key, cost.unit, unit
            )
            return None
        qty = Decimal(str(quantity))
        return to_cents(qty * cost.min), to_cents(qty * cost.max)

    @classmethod
    def default(cls) -> "CostBaseline":
        return _default_baseline()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CostBaseline":
        """Build a baseline from ``{version, effective_date, region, entries}``."""
        try:
            entries = {
                key: CostRange.model_validate(value) for key, value in data["entries"].items()
            }
            effective = data["effective_date"]
            if not isinstance(effective, date):
                effective = date.fromisoformat(str(effective))
            return cls(
                entries=entries,
                version=str(data["version"]),
                effective_date=effective,
                region=str(data["region"]),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise CostBaselineError(f"Malformed cost baseline: {e}") from e

    @classmethod
    def from_json(cls, path: str | Path) -> "CostBaseline":
        """Load an override table from a JSON file."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CostBaselineError(
                f"Cannot read cost baseline {path}: {e}", details={"path": str(path)}
            ) from e
        baseline = cls.from_dict(data)
        logger.info(
            "Loaded cost baseline %s (%s, %d entries) from %s",
            baseline.info.version,
            baseline.info.region,
            len(baseline),
            path,
        )
        return baseline


_default_instance: CostBaseline | None = None


def _default_baseline() -> CostBaseline:
    global _default_instance
    if _default_instance is None:
        _default_instance = CostBaseline(
            entries={
                key: CostRange(min=Decimal(lo), max=Decimal(hi), unit=unit, description=desc)
                for key, (lo, hi, unit, desc) in _DEFAULT_ENTRIES.items()
            },
            version=BASELINE_VERSION,
            effective_date=BASELINE_EFFECTIVE_DATE,
            region=BASELINE_REGION,
        )
    return _default_instance


def get_baseline() -> CostBaseline:
    """Get the bundled cost baseline."""
    return _default_baseline()
