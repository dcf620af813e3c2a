"""
Command line entry point: ``estimate-engine parse`` and ``estimate-engine analyze``.
"""

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .config import EngineSettings
from .core.findings import ParsedReport
from .core.models import ScopeRule
from .core.structural_parser import EstimateParser
from .engine import EstimateIntegrityEngine
from .exceptions import (
    EstimateEngineError,
    FormatDetectionError,
    GeometryValidationError,
    LowConfidenceError,
)
from .reporting.scorecard import ReportFormatter
from .reporting.tables import line_items_frame
from .utils.documents import load_text
from .utils.metrics import LoggingMetricsSink

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REFUSED = 2

REFUSALS = (FormatDetectionError, LowConfidenceError, GeometryValidationError)

SCOPE_RULE_CHOICES = [rule.value for rule in ScopeRule if rule != ScopeRule.SPECIFIC_AREA]


def _load_json(path: str) -> Any:
    with Path(path).expanduser().open(encoding="utf-8") as handle:
        return json.load(handle)


def load_rooms(path: str) -> list[dict[str, Any]]:
    """Rooms file: a JSON list of rooms or an object with a ``rooms`` list."""
    data = _load_json(path)
    if isinstance(data, dict):
        data = data.get("rooms", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of rooms")
    return data


def load_directives(path: str) -> ParsedReport | list[dict[str, Any]]:
    """Directives file: a JSON list of directives or a full ParsedReport object."""
    data = _load_json(path)
    if isinstance(data, dict):
        return ParsedReport.model_validate(data)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of directives")
    return data


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="estimate-engine",
        description="Deterministic structural analysis of insurance repair estimates",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")
    commands = parser.add_subparsers(dest="command", required=True)

    parse_cmd = commands.add_parser("parse", help="Detect the layout and list parsed line items")
    parse_cmd.add_argument("file", help="Estimate file (.txt or .pdf)")
    parse_cmd.add_argument("--json", action="store_true", help="Emit the parsed estimate as JSON")

    analyze_cmd = commands.add_parser("analyze", help="Run every analysis engine")
    analyze_cmd.add_argument("file", help="Estimate file (.txt or .pdf)")
    analyze_cmd.add_argument("--rooms", help="JSON file with measured rooms")
    source = analyze_cmd.add_mutually_exclusive_group()
    source.add_argument("--report", help="Expert report file (.txt or .pdf) to extract directives from")
    source.add_argument("--directives", help="JSON file with structured report directives")
    analyze_cmd.add_argument(
        "--scope-rule",
        choices=SCOPE_RULE_CHOICES,
        help="Removal scope for the rooms; inferred from the loss type when omitted",
    )
    analyze_cmd.add_argument("--baseline", help="JSON cost baseline override")
    analyze_cmd.add_argument("--min-score", type=int, help="Minimum validation score (0-100)")
    analyze_cmd.add_argument("--ai", action="store_true", help="Enable the AI observation overlay")
    analyze_cmd.add_argument("--json", action="store_true", help="Emit the full analysis as JSON")
    return parser.parse_args(argv)


def run_parse(args: argparse.Namespace, settings: EngineSettings) -> int:
    text = load_text(args.file)
    estimate = EstimateParser(min_line_confidence=settings.min_line_confidence).parse(text)

    if args.json:
        print(estimate.model_dump_json(indent=2))
    else:
        layout = estimate.layout
        print(f"Format: {estimate.format.value}")
        if layout is not None:
            print(f"Separator: {layout.separator.value}  Detector confidence: {layout.confidence:.0%}")
        print(f"Confidence: {estimate.confidence.value}  Validation score: {estimate.validation_score}/100")
        print(
            f"Parsed: {estimate.parsed_count}  Rejected: {estimate.rejected_count}  "
            f"Scanned: {estimate.scanned_lines}"
        )
        for warning in estimate.warnings:
            print(f"Warning: {warning}")
        frame = line_items_frame(estimate)
        if not frame.empty:
            print()
            print(frame.drop(columns=["trade_name", "depreciation"]).to_string(index=False))
            print()
            print(f"Total RCV: ${estimate.totals.rcv:,.2f}  Total ACV: ${estimate.totals.acv:,.2f}")

    return EXIT_REFUSED if estimate.layout is None else EXIT_OK


def run_analyze(args: argparse.Namespace, settings: EngineSettings) -> int:
    updates: dict[str, Any] = {}
    if args.min_score is not None:
        updates["min_validation_score"] = args.min_score
    if args.baseline:
        updates["baseline_path"] = Path(args.baseline).expanduser()
    if args.ai:
        updates["ai_overlay_enabled"] = True
    settings = settings.model_copy(update=updates)

    engine = EstimateIntegrityEngine(settings=settings, metrics=LoggingMetricsSink())

    text = load_text(args.file)
    rooms = load_rooms(args.rooms) if args.rooms else None
    directives = load_directives(args.directives) if args.directives else None
    report_text = load_text(args.report) if args.report else None

    analysis = engine.analyze(
        text,
        rooms=rooms,
        directives=directives,
        scope_rule=args.scope_rule,
        report_text=report_text,
    )

    formatter = ReportFormatter(analysis)
    if args.json:
        print(formatter.to_json())
    else:
        formatter.print_full()
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    settings = EngineSettings.from_env()
    logger.debug("Running %s on %s", args.command, args.file)

    try:
        if args.command == "parse":
            return run_parse(args, settings)
        return run_analyze(args, settings)
    except REFUSALS as e:
        print(f"Refused [{e.code}]: {e.message}", file=sys.stderr)
        if isinstance(e, GeometryValidationError):
            for error in e.errors:
                print(f"  - {error}", file=sys.stderr)
        print(f"Remediation: {e.remediation}", file=sys.stderr)
        return EXIT_REFUSED
    except EstimateEngineError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return EXIT_ERROR
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
