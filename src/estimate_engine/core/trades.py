"""
Trade and action classification for estimate line items.

Trade codes resolve from an explicit code token first and from description
keywords second. Both keyword tables are ordered: the first match wins, so
the tie-break order is exactly the order of the entries below.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType

from .models import ActionType

UNKNOWN_TRADE_CODE = "UNK"
UNKNOWN_TRADE_NAME = "Unknown"

TRADE_CODES = MappingProxyType(
    {
        "DRY": "Drywall",
        "FRM": "Framing",
        "RFG": "Roofing",
        "PNT": "Painting",
        "FLR": "Flooring",
        "CRP": "Carpet",
        "INS": "Insulation",
        "ELE": "Electrical",
        "PLM": "Plumbing",
        "HVA": "HVAC",
        "CAB": "Cabinets",
        "CTR": "Countertops",
        "TIL": "Tile",
        "MLD": "Molding/Trim",
        "WIN": "Windows",
        "DOR": "Doors",
        "SID": "Siding",
        "DEM": "Demolition",
        "HAU": "Haul Away",
        "CLN": "Cleaning",
        "MIT": "Mitigation",
        "EQP": "Equipment",
        "PER": "Permit",
        "DET": "Detach/Reset",
        "VCT": "Vinyl",
        "WDP": "Wood Flooring",
        "CEI": "Ceiling",
        "MAS": "Masonry",
        "STL": "Structural Steel",
        "CON": "Concrete",
        "FND": "Foundation",
        "STU": "Stucco",
        "DEC": "Decks",
        "FEN": "Fencing",
        "MIR": "Mirrors",
        "COD": "Code Upgrade",
        "TMP": "Temporary",
        "STO": "Storage",
        "PRO": "Protection",
        "SUP": "Supervision",
        "GEN": "General Conditions",
        "GUT": "Gutters",
        "FLA": "Flashing",
        "TRM": "Trim",
        "GRG": "Garage",
        "APP": "Appliances",
    }
)

UNITS = frozenset(
    {"SF", "LF", "SY", "CY", "EA", "PR", "SQ", "GAL", "HR", "LS", "TON", "MBF", "MLF", "FT"}
)

UNIT_ALIASES = MappingProxyType(
    {
        "SQFT": "SF",
        "SQ FT": "SF",
        "SQ.FT.": "SF",
        "LNFT": "LF",
        "LIN FT": "LF",
        "EACH": "EA",
        "HRS": "HR",
        "SQS": "SQ",
    }
)

# Ordered: first matching keyword wins.
TRADE_KEYWORDS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"drywall|sheetrock", re.IGNORECASE), "DRY"),
    (re.compile(r"paint", re.IGNORECASE), "PNT"),
    (re.compile(r"roof", re.IGNORECASE), "RFG"),
    (re.compile(r"floor", re.IGNORECASE), "FLR"),
    (re.compile(r"carpet", re.IGNORECASE), "CRP"),
    (re.compile(r"insulation", re.IGNORECASE), "INS"),
    (re.compile(r"electric", re.IGNORECASE), "ELE"),
    (re.compile(r"plumb", re.IGNORECASE), "PLM"),
    (re.compile(r"hvac|heating|cooling", re.IGNORECASE), "HVA"),
    (re.compile(r"cabinet", re.IGNORECASE), "CAB"),
    (re.compile(r"counter", re.IGNORECASE), "CTR"),
    (re.compile(r"tile", re.IGNORECASE), "TIL"),
    (re.compile(r"window", re.IGNORECASE), "WIN"),
    (re.compile(r"door", re.IGNORECASE), "DOR"),
    (re.compile(r"fram", re.IGNORECASE), "FRM"),
    (re.compile(r"siding", re.IGNORECASE), "SID"),
    (re.compile(r"molding|trim|baseboard", re.IGNORECASE), "MLD"),
    (re.compile(r"detach|reset", re.IGNORECASE), "DET"),
    (re.compile(r"permit", re.IGNORECASE), "PER"),
    (re.compile(r"haul|debris", re.IGNORECASE), "HAU"),
    (re.compile(r"dehumid|air\s*mover", re.IGNORECASE), "EQP"),
    (re.compile(r"mitigation|extract", re.IGNORECASE), "MIT"),
    (re.compile(r"clean", re.IGNORECASE), "CLN"),
    (re.compile(r"demolition", re.IGNORECASE), "DEM"),
)

# Priority order REMOVE > REPLACE > INSTALL > REPAIR > CLEAN.
ACTION_KEYWORDS: tuple[tuple[ActionType, re.Pattern[str]], ...] = (
    (ActionType.REMOVE, re.compile(r"remove|demo|tear", re.IGNORECASE)),
    (ActionType.REPLACE, re.compile(r"replace|r&r", re.IGNORECASE)),
    (ActionType.INSTALL, re.compile(r"install|\bnew\b", re.IGNORECASE)),
    (ActionType.REPAIR, re.compile(r"repair|patch", re.IGNORECASE)),
    (ActionType.CLEAN, re.compile(r"clean", re.IGNORECASE)),
)

OVERHEAD_PATTERN = re.compile(r"o&p|overhead", re.IGNORECASE)
PROFIT_PATTERN = re.compile(r"o&p|profit", re.IGNORECASE)


@dataclass(frozen=True)
class TradeMatch:
    """Resolved trade for a line item."""

    code: str
    name: str
    explicit: bool


def is_trade_code(token: str | None) -> bool:
    return bool(token) and token.strip().upper() in TRADE_CODES


def normalize_unit(token: str | None) -> str | None:
    """Return the canonical unit for a token, or None if it is not a unit."""
    if not token:
        return None
    key = token.strip().upper()
    if key in UNITS:
        return key
    return UNIT_ALIASES.get(key)


def is_unit(token: str | None) -> bool:
    return normalize_unit(token) is not None


class TradeClassifier:
    """
    Resolves trade codes and action verbs for line items.
    Holds no per-call state, so one instance is shared by every parser.
    """

    def classify_trade(self, code: str | None, description: str = "") -> TradeMatch:
        """
        Resolve a trade from an explicit code field or the description.

        Args:
            code: Candidate code token (may be empty or unmatched)
            description: Line description used for the keyword fallback

        Returns:
            TradeMatch, with code ``UNK`` when nothing matched
        """
        candidate = (code or "").strip().upper()
        if candidate in TRADE_CODES:
            return TradeMatch(candidate, TRADE_CODES[candidate], explicit=True)
        return self._match_description(description)

    def _match_description(self, description: str) -> TradeMatch:
        for pattern, trade_code in TRADE_KEYWORDS:
            if pattern.search(description):
                return TradeMatch(trade_code, TRADE_CODES[trade_code], explicit=False)
        return TradeMatch(UNKNOWN_TRADE_CODE, UNKNOWN_TRADE_NAME, explicit=False)

    def classify_action(self, description: str) -> ActionType:
        """Classify the work verb of a description by keyword priority."""
        for action, pattern in ACTION_KEYWORDS:
            if pattern.search(description):
                return action
        return ActionType.OTHER

    def markup_flags(self, description: str) -> tuple[bool, bool]:
        """Return (overhead, profit) flags for an O&P style line."""
        return (
            bool(OVERHEAD_PATTERN.search(description)),
            bool(PROFIT_PATTERN.search(description)),
        )


# Singleton instance
_classifier_instance: TradeClassifier | None = None


def get_classifier() -> TradeClassifier:
    """Get the singleton classifier instance."""
    global _classifier_instance
    if _classifier_instance is None:
        _classifier_instance = TradeClassifier()
    return _classifier_instance
