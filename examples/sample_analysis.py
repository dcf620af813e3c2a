#!/usr/bin/env python3
"""
Sample Analysis Script.
Demonstrates usage of the Estimate Integrity Engine.
"""

from estimate_engine import EstimateIntegrityEngine, ReportFormatter
from estimate_engine.reporting.tables import trade_summary_frame

SAMPLE_ESTIMATE = "\n".join(
    [
        # Water mitigation
        "MIT\tWater extraction from carpeted floor\t300\tSF\t0.75\t225.00\t225.00",
        "EQP\tAir mover - per 24 hour period\t15\tEA\t35.00\t525.00\t525.00",
        "EQP\tDehumidifier - large - per 24 hour period\t5\tEA\t75.00\t375.00\t375.00",
        # Drywall removed but never put back
        "DRY\tRemove drywall - flood cut 2 ft\t140\tSF\t1.25\t175.00\t175.00",
        "DRY\tTear out wet drywall - ceiling\t60\tSF\t1.40\t84.00\t84.00",
        # Finishes
        "PNT\tPaint walls - two coats\t420\tSF\t1.10\t462.00\t415.80",
        "CRP\tRemove carpet\t300\tSF\t0.50\t150.00\t150.00",
        "CRP\tCarpet - replace\t300\tSF\t4.25\t1275.00\t1020.00",
        "MLD\tBaseboard - detach and reset\t70\tLF\t2.75\t192.50\t192.50",
    ]
)

SAMPLE_ROOMS = [
    {"name": "Living Room", "length": 20, "width": 15, "height": 8},
    {"name": "Hallway", "length": 12, "width": 4, "height": 8},
]

SAMPLE_REPORT = (
    "Mold assessment performed by the industrial hygienist following a category 2 water loss. "
    "Remove drywall to 4 feet above the floor in the living room and hallway. "
    "Remove insulation behind affected walls. Apply antimicrobial treatment to exposed framing."
)


def main() -> None:
    """Run sample analysis demonstration."""
    print("=" * 70)
    print("ESTIMATE INTEGRITY ENGINE - SAMPLE ANALYSIS")
    print("=" * 70)
    print()

    engine = EstimateIntegrityEngine()
    print(f"Enabled Engines: {', '.join(engine.get_enabled_engines())}")
    print()

    print("Running analysis...")
    analysis = engine.analyze(SAMPLE_ESTIMATE, rooms=SAMPLE_ROOMS, report_text=SAMPLE_REPORT)
    formatter = ReportFormatter(analysis)

    print()
    formatter.print_full()

    print()
    print("-" * 70)
    print("Trade Summary")
    print("-" * 70)
    print(trade_summary_frame(analysis.estimate).to_string(index=False))

    print()
    print("-" * 70)
    print("JSON Output (first 500 chars):")
    print("-" * 70)
    json_output = formatter.to_json()
    print(json_output[:500] + "..." if len(json_output) > 500 else json_output)


if __name__ == "__main__":
    main()
