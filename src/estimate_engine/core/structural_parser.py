"""
Structural parser: applies a detected column layout line by line.

Per-line problems never raise. A line that fails validation or scores under
the minimum confidence is counted as rejected, and the aggregate result
carries warnings describing how trustworthy the parse is.
"""

import logging
from decimal import Decimal

from .format_detector import (
    HAS_LETTER,
    QUANTITY_WITH_UNIT,
    SPACE_RUN,
    FormatDetector,
    get_detector,
    parse_number,
    split_fixed,
)
from .models import (
    ColumnLayout,
    ConfidenceLabel,
    EstimateFormat,
    EstimateTotals,
    LineItem,
    SeparatorKind,
    StructuredEstimate,
    round_half_up,
)
from .normalizer import normalize_text
from .trades import TradeClassifier, get_classifier, is_trade_code, is_unit, normalize_unit

logger = logging.getLogger(__name__)

FORMAT_FAILURE_WARNING = "Format detection failed - unable to identify column structure"
NO_ITEMS_WARNING = "No line items could be parsed"

SKIP_KEYWORDS = ("description", "quantity", "total", "subtotal")


class EstimateParser:
    """
    Converts normalized estimate text into a StructuredEstimate.
    """

    MIN_LINE_LENGTH = 15
    MIN_LINE_CONFIDENCE = 0.60
    SPACE_LINE_CONFIDENCE = 0.80

    MISSING_TRADE_PENALTY = 0.10
    MISSING_QUANTITY_PENALTY = 0.10
    MISSING_UNIT_PENALTY = 0.05

    HIGH_SCORE = 85
    MEDIUM_SCORE = 70
    LOW_SCORE = 50

    REJECTION_WARNING_RATIO = 0.30
    DETECTOR_WARNING_CONFIDENCE = 0.85

    def __init__(
        self,
        detector: FormatDetector | None = None,
        classifier: TradeClassifier | None = None,
        min_line_confidence: float | None = None,
    ) -> None:
        self.detector = detector or get_detector()
        self.classifier = classifier or get_classifier()
        self.min_line_confidence = (
            self.MIN_LINE_CONFIDENCE if min_line_confidence is None else min_line_confidence
        )

    def parse(self, text: str, layout: ColumnLayout | None = None) -> StructuredEstimate:
        """
        Parse raw estimate text.

        Args:
            text: Raw estimate text in any detectable format
            layout: Optional explicit layout that bypasses format detection

        Returns:
            StructuredEstimate; FAILED with a single warning when no layout is found
        """
        normalized = normalize_text(text)
        lines = normalized.split("\n") if normalized else []

        if layout is None:
            layout = self.detector.detect(normalized)
        if layout is None:
            logger.warning("Format detection failed for %d lines of input", len(lines))
            return StructuredEstimate(
                format=EstimateFormat.UNKNOWN,
                confidence=ConfidenceLabel.FAILED,
                warnings=[FORMAT_FAILURE_WARNING],
                scanned_lines=sum(1 for line in lines if line.strip()),
            )

        items: list[LineItem] = []
        scanned = 0
        rejected = 0
        for number, line in enumerate(lines, start=1):
            if len(line.strip()) < self.MIN_LINE_LENGTH or self._is_header(line):
                continue
            scanned += 1

            item = self._parse_line(line, number, layout)
            if item is None or item.confidence < self.min_line_confidence:
                rejected += 1
                logger.debug("Rejected line %d: %r", number, line)
                continue
            items.append(item)

        return self._build_result(items, scanned, rejected, layout)

    def _is_header(self, line: str) -> bool:
        lowered = line.lower()
        return any(keyword in lowered for keyword in SKIP_KEYWORDS)

    def _parse_line(self, line: str, number: int, layout: ColumnLayout) -> LineItem | None:
        if layout.separator == SeparatorKind.SPACE:
            return self._parse_space_line(line, number)
        if layout.separator == SeparatorKind.TAB:
            fields = self._extract_tab_fields(line, layout)
        else:
            fields = self._extract_fixed_fields(line, layout)
        return self._build_item(fields, line, number)

    def _extract_tab_fields(self, line: str, layout: ColumnLayout) -> dict[str, str]:
        tokens = line.split("\t")
        fields: dict[str, str] = {}
        for name, boundary in layout.columns.items():
            if boundary.start is not None and boundary.start < len(tokens):
                fields[name] = tokens[boundary.start].strip()
        return fields

    def _extract_fixed_fields(self, line: str, layout: ColumnLayout) -> dict[str, str]:
        positions = layout.evidence.get("positions") or sorted(
            {b.start for b in layout.columns.values() if b.start is not None}
        )
        segments = split_fixed(line, positions)
        fields: dict[str, str] = {}
        for name, boundary in layout.columns.items():
            start = boundary.start or 0
            end = boundary.end
            parts = [
                segment
                for position, segment in zip(positions, segments)
                if segment and position >= start and (end is None or position < end)
            ]
            fields[name] = " ".join(parts)
        return fields

    def _build_item(self, fields: dict[str, str], line: str, number: int) -> LineItem | None:
        description = (fields.get("description") or "").strip()
        rcv = parse_number(fields.get("rcv"))
        if not description or rcv is None:
            return None

        raw_quantity = fields.get("quantity") or ""
        raw_unit = fields.get("unit") or ""
        combined = QUANTITY_WITH_UNIT.match(raw_quantity)
        if combined:
            # Quantity and unit share one column, e.g. "200.00 SF".
            raw_quantity, raw_unit = combined.group(1), combined.group(2)

        quantity = parse_number(raw_quantity)
        unit = normalize_unit(raw_unit)
        unit_price = parse_number(fields.get("unit_price"))
        acv = parse_number(fields.get("acv"))

        trade = self.classifier.classify_trade(fields.get("trade_code"), description)
        confidence = 1.0
        if not trade.explicit:
            confidence -= self.MISSING_TRADE_PENALTY
        if quantity is None:
            confidence -= self.MISSING_QUANTITY_PENALTY
        if unit is None:
            confidence -= self.MISSING_UNIT_PENALTY

        overhead, profit = self.classifier.markup_flags(description)
        return LineItem(
            line_number=number,
            raw_text=line,
            trade_code=trade.code,
            trade_name=trade.name,
            description=description,
            quantity=float(quantity) if quantity is not None else 1.0,
            unit=unit or "EA",
            unit_price=unit_price if unit_price is not None else Decimal("0"),
            rcv=rcv,
            acv=acv,
            action=self.classifier.classify_action(description),
            overhead=overhead,
            profit=profit,
            confidence=round(confidence, 2),
        )

    def _parse_space_line(self, line: str, number: int) -> LineItem | None:
        code: str | None = None
        unit: str | None = None
        quantity: Decimal | None = None
        prices: list[Decimal] = []
        words: list[str] = []

        for token in (t for t in SPACE_RUN.split(line.strip()) if t):
            if code is None and is_trade_code(token):
                code = token
                continue
            if unit is None and is_unit(token):
                unit = normalize_unit(token)
                continue
            value = parse_number(token)
            if value is not None:
                has_dollar = "$" in token
                if quantity is None and not has_dollar and value < 10000:
                    quantity = value
                elif has_dollar or value >= 10:
                    prices.append(value)
                continue
            if len(token) > 3 and HAS_LETTER.search(token):
                words.append(token)

        description = " ".join(words)
        if not description or not prices or prices[0] == 0:
            return None

        trade = self.classifier.classify_trade(code, description)
        overhead, profit = self.classifier.markup_flags(description)
        return LineItem(
            line_number=number,
            raw_text=line,
            trade_code=trade.code,
            trade_name=trade.name,
            description=description,
            quantity=float(quantity) if quantity is not None else 1.0,
            unit=unit or "EA",
            rcv=prices[0],
            acv=prices[1] if len(prices) > 1 else None,
            action=self.classifier.classify_action(description),
            overhead=overhead,
            profit=profit,
            confidence=self.SPACE_LINE_CONFIDENCE,
        )

    def _build_result(
        self,
        items: list[LineItem],
        scanned: int,
        rejected: int,
        layout: ColumnLayout,
    ) -> StructuredEstimate:
        warnings: list[str] = []
        parsed = len(items)

        if parsed == 0:
            score = 0
            avg_confidence = 0.0
            label = ConfidenceLabel.FAILED
            warnings.append(NO_ITEMS_WARNING)
        else:
            avg_confidence = sum(item.confidence for item in items) / parsed
            parse_ratio = parsed / max(scanned - rejected, 1)
            score = min(100, round_half_up(parse_ratio * avg_confidence * 100))
            if score >= self.HIGH_SCORE:
                label = ConfidenceLabel.HIGH
            elif score >= self.MEDIUM_SCORE:
                label = ConfidenceLabel.MEDIUM
                warnings.append(f"Parse confidence: {score}% (acceptable but not optimal)")
            elif score >= self.LOW_SCORE:
                label = ConfidenceLabel.LOW
                warnings.append(f"Low parse confidence: {score}%")
            else:
                label = ConfidenceLabel.FAILED
                warnings.append(f"Parse confidence too low: {score}% (minimum {self.LOW_SCORE}%)")

        if parsed and rejected > self.REJECTION_WARNING_RATIO * parsed:
            warnings.append(f"{rejected} lines rejected due to low confidence")
        if layout.confidence < self.DETECTOR_WARNING_CONFIDENCE:
            warnings.append(
                f"Format detection confidence: {layout.confidence * 100:.0f}% - "
                "some columns may be misidentified"
            )

        logger.info(
            "Parsed %d line items (%d rejected, %d scanned): score %d %s",
            parsed,
            rejected,
            scanned,
            score,
            label.value,
        )
        return StructuredEstimate(
            line_items=items,
            totals=EstimateTotals.from_items(items),
            format=layout.format,
            layout=layout,
            confidence=label,
            validation_score=score,
            warnings=warnings,
            scanned_lines=scanned,
            parsed_count=parsed,
            rejected_count=rejected,
            avg_line_confidence=round(avg_confidence, 4),
        )


# Singleton instance
_parser_instance: EstimateParser | None = None


def get_parser() -> EstimateParser:
    """Get the singleton parser instance."""
    global _parser_instance
    if _parser_instance is None:
        _parser_instance = EstimateParser()
    return _parser_instance


def parse_estimate(text: str, layout: ColumnLayout | None = None) -> StructuredEstimate:
    """Parse estimate text with the shared parser."""
    return get_parser().parse(text, layout=layout)
