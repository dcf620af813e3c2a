"""
Expert report directive extraction.
Pulls explicit, measurable scope directives out of engineering, hygienist
and environmental report text.
"""

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType

from ..core.findings import DirectiveType, ParsedReport, ReportDirective, ReportType
from ..core.models import ScopeRule, Severity
from ..core.trades import TRADE_CODES

logger = logging.getLogger(__name__)

SENTENCE_SPLIT = re.compile(r"[.!?]+")
MIN_SENTENCE_LENGTH = 10
SHORT_REPORT_CHARS = 500

# Material word -> trade code
MATERIAL_TRADES = MappingProxyType(
    {
        "drywall": "DRY",
        "sheetrock": "DRY",
        "insulation": "INS",
        "flooring": "FLR",
        "carpet": "CRP",
        "vinyl": "VCT",
        "tile": "TIL",
        "hardwood": "WDP",
        "decking": "RFG",
        "sheathing": "RFG",
        "ceiling": "CEI",
    }
)

_HEIGHT_RULES = MappingProxyType({2: ScopeRule.CUT_2FT, 4: ScopeRule.CUT_4FT, 6: ScopeRule.CUT_6FT})


@dataclass(frozen=True)
class DirectivePattern:
    """One directive shape; ``trade`` of None means the matched material decides."""

    pattern: re.Pattern
    directive_type: DirectiveType
    quantity_rule: ScopeRule | None
    trade: str | None = None


# Ordered; each pattern may fire once per sentence.
DIRECTIVE_PATTERNS = (
    DirectivePattern(
        re.compile(r"remove.*?(?:drywall|sheetrock).*?(\d+)\s*(?:ft\b|feet|foot|')", re.I),
        DirectiveType.REMOVE,
        None,
        "DRY",
    ),
    DirectivePattern(
        re.compile(
            r"remove.*?(?:drywall|sheetrock).*?(?:full[- ]height|floor to ceiling|entire wall)",
            re.I,
        ),
        DirectiveType.REMOVE,
        ScopeRule.FULL_HEIGHT,
        "DRY",
    ),
    DirectivePattern(
        re.compile(r"remove.*?insulation", re.I),
        DirectiveType.REMOVE,
        ScopeRule.FULL_HEIGHT,
        "INS",
    ),
    DirectivePattern(
        re.compile(r"replace.*?(?:roof\s+)?(?:decking|sheathing)", re.I),
        DirectiveType.REPLACE,
        ScopeRule.SPECIFIC_AREA,
        "RFG",
    ),
    DirectivePattern(
        re.compile(r"remove.*?\b(flooring|carpet|vinyl|tile|hardwood)", re.I),
        DirectiveType.REMOVE,
        ScopeRule.SPECIFIC_AREA,
    ),
    DirectivePattern(
        re.compile(r"replace.*?ceiling", re.I),
        DirectiveType.REPLACE,
        ScopeRule.CEILING_ONLY,
        "CEI",
    ),
)

PRIORITY_KEYWORDS = (
    (Severity.CRITICAL, ("immediate", "critical", "urgent")),
    (Severity.HIGH, ("recommend", "should", "necessary")),
    (Severity.MODERATE, ("consider", "may")),
)

REPORT_TYPE_KEYWORDS = (
    (ReportType.ENGINEERING, ("structural engineer", "engineering report")),
    (ReportType.HYGIENIST, ("industrial hygienist", "hygiene report")),
    (ReportType.ENVIRONMENTAL, ("environmental", "mold assessment")),
    (ReportType.MOLD, ("mold", "microbial")),
    (ReportType.STRUCTURAL, ("structural damage", "structural assessment")),
)


def determine_priority(sentence: str) -> Severity:
    lower = sentence.lower()
    for severity, keywords in PRIORITY_KEYWORDS:
        if any(re.search(rf"\b{keyword}", lower) for keyword in keywords):
            return severity
    return Severity.LOW


def detect_report_type(text: str) -> ReportType:
    lower = text.lower()
    for report_type, keywords in REPORT_TYPE_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return report_type
    return ReportType.OTHER


def _directive(entry: DirectivePattern, match: re.Match, sentence: str) -> ReportDirective | None:
    trade = entry.trade or MATERIAL_TRADES.get(match.group(1).lower())
    if trade is None:
        return None

    rule = entry.quantity_rule
    specific_quantity = None
    specific_unit = None
    if rule is None:
        height = int(match.group(1))
        rule = _HEIGHT_RULES.get(height, ScopeRule.SPECIFIC_AREA)
        if rule == ScopeRule.SPECIFIC_AREA:
            specific_quantity, specific_unit = float(height), "FT"

    return ReportDirective(
        trade=trade,
        trade_name=TRADE_CODES.get(trade, trade),
        directive_type=entry.directive_type,
        quantity_rule=rule,
        priority=determine_priority(sentence),
        measurable=True,
        source_text=sentence,
        specific_quantity=specific_quantity,
        specific_unit=specific_unit,
    )


def extract_directives(text: str) -> ParsedReport:
    """
    Extract measurable directives from expert report text.

    Args:
        text: Plain report text

    Returns:
        ParsedReport with directives, report type and extraction warnings
    """
    sentences = [s.strip() for s in SENTENCE_SPLIT.split(text)]
    sentences = [s for s in sentences if len(s) > MIN_SENTENCE_LENGTH]

    directives: list[ReportDirective] = []
    seen: set[tuple] = set()
    for sentence in sentences:
        for entry in DIRECTIVE_PATTERNS:
            match = entry.pattern.search(sentence)
            if not match:
                continue
            directive = _directive(entry, match, sentence)
            if directive is None:
                continue
            key = (directive.trade, directive.directive_type, directive.quantity_rule, sentence)
            if key in seen:
                continue
            seen.add(key)
            directives.append(directive)

    measurable = sum(1 for d in directives if d.measurable)
    warnings = []
    if not directives:
        warnings.append(
            "No directives extracted - report may not contain specific recommendations"
        )
    elif measurable == 0:
        warnings.append("Directives found but none are measurable")
    if len(text) < SHORT_REPORT_CHARS:
        warnings.append("Report text is very short - extraction may be incomplete")

    summary = (
        f"Extracted {len(directives)} directive(s), {measurable} measurable."
        if directives
        else "No explicit directives found in report."
    )
    logger.info("Extracted %d directive(s) from report", len(directives))
    return ParsedReport(
        report_type=detect_report_type(text),
        directives=directives,
        measurable_count=measurable,
        confidence=min(1.0, len(directives) / 10),
        summary=summary,
        warnings=warnings,
    )
