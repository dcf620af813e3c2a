"""
Runtime configuration for the Estimate Integrity Engine.

``Heuristics`` collects the conservative assumptions the rule engines fall
back on when an estimate does not carry a measurable quantity. They are not
derived from measured data, so they stay visible and overridable here.
``EngineSettings`` holds caller policy (confidence minimums, overlay options)
and can be assembled from environment variables.
"""

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

_BOOLEAN_TRUE = {"1", "true", "yes", "on"}

ENV_PREFIX = "ESTIMATE_ENGINE_"


class Heuristics(BaseModel):
    """Named, overridable heuristic constants used by the rule engines."""

    model_config = ConfigDict(frozen=True)

    # Exposure engine
    rebuild_multiplier_min: float = Field(default=2.0, gt=0)
    rebuild_multiplier_max: float = Field(default=4.0, gt=0)
    assumed_detach_reset_fixtures: int = Field(default=3, ge=0)
    perimeter_factor: float = Field(default=4.0, gt=0)  # perimeter LF = sqrt(SF) * factor

    # Code-upgrade engine
    afci_circuits: int = Field(default=2, ge=0)
    afci_circuits_rewire: int = Field(default=4, ge=0)
    smoke_detectors: int = Field(default=3, ge=0)
    ice_water_fraction: float = Field(default=0.20, ge=0, le=1)
    permit_rcv_threshold: float = Field(default=5000.0, ge=0)

    # Completeness engine
    quantity_divergence: float = Field(default=0.15, ge=0)

    # Deviation engine
    low_cut_removal_sf: float = Field(default=100.0, ge=0)
    variance_threshold: float = Field(default=0.20, ge=0)
    critical_variance: float = Field(default=0.40, ge=0)
    critical_cut_shortfall_sf: float = Field(default=400.0, ge=0)


DEFAULT_HEURISTICS = Heuristics()


class EngineSettings(BaseModel):
    """Caller policy for an analysis run."""

    min_validation_score: int = Field(default=75, ge=0, le=100)
    min_line_confidence: float = Field(default=0.60, ge=0, le=1)
    baseline_path: Path | None = None
    ai_overlay_enabled: bool = False
    ai_model: str = "gemini-2.5-flash"
    ai_timeout_seconds: float = Field(default=20.0, gt=0)
    google_api_key: str | None = None
    heuristics: Heuristics = Field(default_factory=Heuristics)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "EngineSettings":
        """Build settings from ``ESTIMATE_ENGINE_*`` variables, falling back to defaults."""
        env = os.environ if env is None else env
        defaults = cls()

        def get(name: str) -> str | None:
            return env.get(f"{ENV_PREFIX}{name}")

        min_score = _to_int(get("MIN_VALIDATION_SCORE"))
        min_line = _to_float(get("MIN_LINE_CONFIDENCE"))
        timeout = _to_float(get("AI_TIMEOUT_SECONDS"))
        baseline = (get("BASELINE_PATH") or "").strip()

        return cls(
            min_validation_score=defaults.min_validation_score if min_score is None else min_score,
            min_line_confidence=defaults.min_line_confidence if min_line is None else min_line,
            baseline_path=Path(baseline).expanduser() if baseline else None,
            ai_overlay_enabled=_flag(get("AI_OVERLAY_ENABLED")),
            ai_model=(get("AI_MODEL") or "").strip() or defaults.ai_model,
            ai_timeout_seconds=defaults.ai_timeout_seconds if timeout is None else timeout,
            google_api_key=env.get("GOOGLE_API_KEY") or env.get("GEMINI_API_KEY") or None,
        )


def _to_int(value: object | None) -> int | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _to_float(value: object | None) -> float | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _flag(value: object | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _BOOLEAN_TRUE
