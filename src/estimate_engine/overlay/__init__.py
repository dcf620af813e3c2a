"""
AI observation overlay.
"""

from .annotator import (
    AIObservations,
    Annotator,
    OverlayInput,
    OverlayResult,
    OverlayStatus,
    run_overlay,
)
from .gemini import GeminiAnnotator

__all__ = [
    "AIObservations",
    "Annotator",
    "GeminiAnnotator",
    "OverlayInput",
    "OverlayResult",
    "OverlayStatus",
    "run_overlay",
]
