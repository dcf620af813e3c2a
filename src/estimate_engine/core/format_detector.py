"""
Format fingerprinting for normalized estimate text.

Strategies run in strict precedence (tab, fixed-width, space-separated) and
the first one that clears its evidence bar wins. No blending of strategies.
"""

import logging
import re
from collections import Counter
from decimal import Decimal, InvalidOperation

from .models import ColumnBoundary, ColumnLayout, EstimateFormat, SeparatorKind
from .trades import is_trade_code, is_unit

logger = logging.getLogger(__name__)

SPACE_RUN = re.compile(r" {2,}|\t+")
WORD = re.compile(r"\S+")
NUMBER = re.compile(r"^\d+(\.\d*)?$")
PRICE_TOKEN = re.compile(r"^\$|^\d{3,}")
QUANTITY_TOKEN = re.compile(r"^\d{1,5}(\.\d*)?$")
QUANTITY_WITH_UNIT = re.compile(r"^(\d[\d,]*(?:\.\d+)?)\s+([A-Za-z]{1,3})$")
HAS_LETTER = re.compile(r"[A-Za-z]")

TAB_FIELDS = ("trade_code", "description", "quantity", "unit", "unit_price", "rcv", "acv")
REQUIRED_FIELDS = ("description", "rcv")


def parse_number(token: str | None) -> Decimal | None:
    """Parse a money or quantity token such as ``$1,250.00``; None if not numeric."""
    if token is None:
        return None
    cleaned = token.replace("$", "").replace(",", "").strip()
    if not NUMBER.match(cleaned):
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def split_fixed(line: str, positions: list[int]) -> list[str]:
    """
    Split a line into fixed-width segments.

    Each whitespace-delimited word goes to the segment it overlaps most, so a
    right-aligned number that starts a character or two before its column
    boundary is not cut in half.
    """
    if not positions:
        return []
    bounds = [
        (start, positions[i + 1] if i + 1 < len(positions) else max(len(line), start + 1))
        for i, start in enumerate(positions)
    ]
    segments: list[list[str]] = [[] for _ in bounds]
    for match in WORD.finditer(line):
        w_start, w_end = match.span()
        best, best_overlap = 0, -1
        for idx, (b_start, b_end) in enumerate(bounds):
            overlap = min(w_end, b_end) - max(w_start, b_start)
            if overlap > best_overlap:
                best, best_overlap = idx, overlap
        if best_overlap <= 0 and w_start < bounds[0][0]:
            best = 0
        segments[best].append(match.group())
    return [" ".join(words) for words in segments]


class FormatDetector:
    """
    Infers a ColumnLayout from a sample of estimate lines.
    """

    SAMPLE_SIZE = 10
    MIN_SAMPLE_LINES = 3
    MIN_LINE_LENGTH = 20
    CONSISTENCY = 0.70

    TAB_CONFIDENCE = 0.95
    FIXED_CONFIDENCE = 0.90
    SPACE_CONFIDENCE = 0.75

    MIN_TABS_PER_LINE = 4
    MIN_TAB_POSITIONS = 5
    MIN_FIXED_STARTS = 4
    MIN_SPACE_TOKENS = 3

    def detect(self, text: str) -> ColumnLayout | None:
        """
        Return the most probable layout for the text, or None if no
        strategy clears its minimum evidence bar.
        """
        candidates = [line for line in text.split("\n") if len(line.strip()) > self.MIN_LINE_LENGTH]
        if len(candidates) < self.MIN_SAMPLE_LINES:
            logger.debug("Only %d candidate lines; no layout", len(candidates))
            return None

        sample = candidates[: self.SAMPLE_SIZE]
        for strategy in (self._detect_tab, self._detect_fixed_width, self._detect_space_separated):
            layout = strategy(sample)
            if layout is not None:
                logger.info(
                    "Detected %s layout (confidence %.2f)", layout.format.value, layout.confidence
                )
                return layout

        logger.info("No layout strategy matched %d sampled lines", len(sample))
        return None

    # -- tab-separated ----------------------------------------------------

    def _detect_tab(self, sample: list[str]) -> ColumnLayout | None:
        tabbed = sum(1 for line in sample if "\t" in line)
        if tabbed < self.CONSISTENCY * len(sample):
            return None

        rows = [line for line in sample if line.count("\t") >= self.MIN_TABS_PER_LINE]
        if len(rows) < self.MIN_SAMPLE_LINES:
            return None

        offsets: dict[int, list[int]] = {}
        for line in rows:
            tab_offsets = [i for i, ch in enumerate(line) if ch == "\t"]
            for idx, offset in enumerate(tab_offsets):
                offsets.setdefault(idx, []).append(offset)
        averaged = [round(sum(v) / len(v)) for _, v in sorted(offsets.items())]
        if len(averaged) < self.MIN_TAB_POSITIONS:
            return None

        field_count = min(len(averaged) + 1, len(TAB_FIELDS))
        columns = {
            name: ColumnBoundary(name=name, start=idx, end=idx + 1, required=name in REQUIRED_FIELDS)
            for idx, name in enumerate(TAB_FIELDS[:field_count])
        }
        return ColumnLayout(
            format=EstimateFormat.TAB_SEPARATED,
            separator=SeparatorKind.TAB,
            columns=columns,
            confidence=self.TAB_CONFIDENCE,
            evidence={"tab_positions": averaged, "sample_lines": len(rows)},
        )

    # -- fixed-width --------------------------------------------------------

    def _detect_fixed_width(self, sample: list[str]) -> ColumnLayout | None:
        rows: list[str] = []
        counter: Counter[int] = Counter()
        for line in sample:
            starts = {
                i
                for i, ch in enumerate(line)
                if not ch.isspace() and (i == 0 or line[i - 1] == " ")
            }
            if len(starts) >= self.MIN_FIXED_STARTS:
                rows.append(line)
                counter.update(starts)
        if len(rows) < self.MIN_SAMPLE_LINES:
            return None

        threshold = self.CONSISTENCY * len(rows)
        positions = sorted(pos for pos, count in counter.items() if count >= threshold)
        if len(positions) < self.MIN_FIXED_STARTS:
            return None

        segments = [split_fixed(line, positions) for line in rows]
        column_values = [[seg[idx] for seg in segments] for idx in range(len(positions))]
        roles = self._classify_columns(column_values)
        if any(name not in roles for name in REQUIRED_FIELDS):
            logger.debug("Fixed-width columns %s lack description/RCV roles", positions)
            return None

        columns: dict[str, ColumnBoundary] = {}
        for name, (first, last) in roles.items():
            end = positions[last + 1] if last + 1 < len(positions) else None
            columns[name] = ColumnBoundary(
                name=name, start=positions[first], end=end, required=name in REQUIRED_FIELDS
            )
        return ColumnLayout(
            format=EstimateFormat.FIXED_WIDTH,
            separator=SeparatorKind.FIXED,
            columns=columns,
            confidence=self.FIXED_CONFIDENCE,
            evidence={"positions": positions, "sample_lines": len(rows)},
        )

    def _classify_columns(self, column_values: list[list[str]]) -> dict[str, tuple[int, int]]:
        """Assign semantic roles to fixed-width columns as (first, last) index spans."""
        roles: dict[str, tuple[int, int]] = {}
        price_columns: list[int] = []

        for idx, raw_values in enumerate(column_values):
            values = [v for v in raw_values if v]
            if not values:
                continue
            if "trade_code" not in roles and _majority(values, is_trade_code):
                roles["trade_code"] = (idx, idx)
                continue
            if "unit" not in roles and _majority(values, is_unit):
                roles["unit"] = (idx, idx)
                continue
            if "quantity" not in roles and _majority(values, lambda v: bool(QUANTITY_WITH_UNIT.match(v))):
                roles["quantity"] = (idx, idx)
                roles.setdefault("unit", (idx, idx))
                continue

            numbers = [parse_number(v) for v in values]
            if all(n is not None for n in numbers):
                small = all(n < 10000 for n in numbers) and not any("$" in v for v in values)
                if "quantity" not in roles and small and not price_columns:
                    roles["quantity"] = (idx, idx)
                else:
                    price_columns.append(idx)
                continue

            if not _majority(values, lambda v: bool(HAS_LETTER.search(v))):
                continue
            if "description" not in roles:
                roles["description"] = (idx, idx)
            elif roles["description"][1] == idx - 1:
                # Word starts inside a shared description prefix split the column.
                roles["description"] = (roles["description"][0], idx)

        if not price_columns and "quantity" in roles and "unit" not in roles:
            # A lone unit-less numeric column is the RCV, not a quantity.
            price_columns.append(roles.pop("quantity")[0])

        if len(price_columns) == 1:
            roles["rcv"] = (price_columns[0], price_columns[0])
        elif len(price_columns) == 2:
            first, second = price_columns
            if "quantity" in roles and self._extends(column_values, roles["quantity"][0], first, second):
                roles["unit_price"] = (first, first)
                roles["rcv"] = (second, second)
            else:
                roles["rcv"] = (first, first)
                roles["acv"] = (second, second)
        elif len(price_columns) >= 3:
            roles["unit_price"] = (price_columns[0], price_columns[0])
            roles["rcv"] = (price_columns[1], price_columns[1])
            roles["acv"] = (price_columns[2], price_columns[2])
        return roles

    def _extends(self, column_values: list[list[str]], qty_idx: int, price_idx: int, total_idx: int) -> bool:
        """True when quantity x price reproduces the total column on most rows."""
        rows = [
            row
            for row in zip(column_values[qty_idx], column_values[price_idx], column_values[total_idx])
            if all(row)
        ]
        if not rows:
            return False
        hits = 0
        for qty, price, total in rows:
            q, p, t = parse_number(qty.split()[0]), parse_number(price), parse_number(total)
            if q is not None and p is not None and t is not None and abs(q * p - t) <= Decimal("0.05") * max(t, 1):
                hits += 1
        return hits >= self.CONSISTENCY * len(rows)

    # -- space-separated ----------------------------------------------------

    def _detect_space_separated(self, sample: list[str]) -> ColumnLayout | None:
        rows: list[list[str]] = []
        for line in sample:
            tokens = [t for t in SPACE_RUN.split(line.strip()) if t]
            if len(tokens) >= self.MIN_SPACE_TOKENS and any(PRICE_TOKEN.match(t) for t in tokens):
                rows.append(tokens)
        if len(rows) < self.MIN_SAMPLE_LINES:
            return None

        coded = sum(
            1
            for tokens in rows
            if any(is_trade_code(t) for t in tokens)
            and any(QUANTITY_TOKEN.match(t) for t in tokens)
        )
        if coded < self.CONSISTENCY * len(rows):
            return None

        with_units = sum(1 for tokens in rows if any(is_unit(t) for t in tokens))
        columns = {
            name: ColumnBoundary(name=name, required=name in REQUIRED_FIELDS)
            for name in ("trade_code", "description", "quantity", "unit", "rcv", "acv")
        }
        return ColumnLayout(
            format=EstimateFormat.SPACE_SEPARATED,
            separator=SeparatorKind.SPACE,
            columns=columns,
            confidence=self.SPACE_CONFIDENCE,
            evidence={
                "sample_lines": len(rows),
                "coded_lines": coded,
                "unit_consistency": round(with_units / len(rows), 2),
            },
        )


def _majority(values: list[str], predicate) -> bool:
    return sum(1 for v in values if predicate(v)) >= 0.5 * len(values)


# Singleton instance
_detector_instance: FormatDetector | None = None


def get_detector() -> FormatDetector:
    """Get the singleton detector instance."""
    global _detector_instance
    if _detector_instance is None:
        _detector_instance = FormatDetector()
    return _detector_instance


def detect_format(text: str) -> ColumnLayout | None:
    """Convenience wrapper around the shared detector."""
    return get_detector().detect(text)
