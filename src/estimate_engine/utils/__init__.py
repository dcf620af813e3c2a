"""
Utility modules for the Estimate Integrity Engine.
"""

from .documents import extract_pdf_text, load_text
from .metrics import LoggingMetricsSink, MetricsSink, NullMetricsSink, timed

__all__ = [
    "LoggingMetricsSink",
    "MetricsSink",
    "NullMetricsSink",
    "extract_pdf_text",
    "load_text",
    "timed",
]
