"""
Tabular views of a parsed estimate.
"""

import pandas as pd

from ..core.models import StructuredEstimate

LINE_ITEM_COLUMNS = [
    "line_number",
    "trade_code",
    "trade_name",
    "description",
    "action",
    "quantity",
    "unit",
    "unit_price",
    "rcv",
    "acv",
    "depreciation",
    "confidence",
]

TRADE_SUMMARY_COLUMNS = ["trade_code", "trade_name", "items", "quantity", "unit", "rcv", "acv"]


def line_items_frame(estimate: StructuredEstimate) -> pd.DataFrame:
    """One row per parsed line item; money columns as floats."""
    rows = [
        {
            "line_number": item.line_number,
            "trade_code": item.trade_code,
            "trade_name": item.trade_name,
            "description": item.description,
            "action": item.action.value,
            "quantity": item.quantity,
            "unit": item.unit,
            "unit_price": float(item.unit_price),
            "rcv": float(item.rcv),
            "acv": float(item.acv),
            "depreciation": float(item.depreciation),
            "confidence": item.confidence,
        }
        for item in estimate.line_items
    ]
    return pd.DataFrame(rows, columns=LINE_ITEM_COLUMNS)


def trade_summary_frame(estimate: StructuredEstimate) -> pd.DataFrame:
    """
    Per-trade item counts and RCV/ACV sums.

    Quantities are only summed when every item of the trade shares a unit;
    mixed-unit trades report a quantity of NaN and unit ``MIXED``.
    """
    df = line_items_frame(estimate)
    if df.empty:
        return pd.DataFrame(columns=TRADE_SUMMARY_COLUMNS)

    grouped = df.groupby(["trade_code", "trade_name"], sort=True)
    summary = grouped.agg(
        items=("line_number", "count"),
        quantity=("quantity", "sum"),
        units=("unit", "nunique"),
        unit=("unit", "first"),
        rcv=("rcv", "sum"),
        acv=("acv", "sum"),
    ).reset_index()

    mixed = summary["units"] > 1
    summary.loc[mixed, "quantity"] = float("nan")
    summary.loc[mixed, "unit"] = "MIXED"
    summary["rcv"] = summary["rcv"].round(2)
    summary["acv"] = summary["acv"].round(2)
    return summary[TRADE_SUMMARY_COLUMNS]
