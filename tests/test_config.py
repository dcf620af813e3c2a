"""
Tests for settings, heuristics, metrics sinks and the cost baseline.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError

from estimate_engine.config import EngineSettings, Heuristics
from estimate_engine.core.cost_baseline import BASELINE_VERSION, CostBaseline
from estimate_engine.exceptions import CostBaselineError
from estimate_engine.utils import documents
from estimate_engine.utils.documents import load_text
from estimate_engine.utils.metrics import LoggingMetricsSink, MetricsSink, NullMetricsSink, timed


class RecordingSink:
    def __init__(self) -> None:
        self.timings: list[tuple[str, dict]] = []

    def increment(self, name: str, value: int = 1, **tags: str) -> None:
        pass

    def timing(self, name: str, seconds: float, **tags: str) -> None:
        self.timings.append((name, tags))


class TestEngineSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self) -> None:
        """Test settings with an empty environment."""
        settings = EngineSettings.from_env({})
        assert settings.min_validation_score == 75
        assert settings.min_line_confidence == 0.60
        assert settings.baseline_path is None
        assert settings.ai_overlay_enabled is False
        assert settings.google_api_key is None

    def test_from_env(self) -> None:
        """Test prefixed variables override defaults."""
        settings = EngineSettings.from_env(
            {
                "ESTIMATE_ENGINE_MIN_VALIDATION_SCORE": "85",
                "ESTIMATE_ENGINE_AI_OVERLAY_ENABLED": "yes",
                "ESTIMATE_ENGINE_AI_TIMEOUT_SECONDS": "5",
                "ESTIMATE_ENGINE_BASELINE_PATH": "/tmp/baseline.json",
                "GEMINI_API_KEY": "test-key",
            }
        )
        assert settings.min_validation_score == 85
        assert settings.ai_overlay_enabled is True
        assert settings.ai_timeout_seconds == 5.0
        assert settings.baseline_path == Path("/tmp/baseline.json")
        assert settings.google_api_key == "test-key"

    def test_unparseable_values_fall_back(self) -> None:
        """Test garbage numbers keep the defaults."""
        settings = EngineSettings.from_env({"ESTIMATE_ENGINE_MIN_VALIDATION_SCORE": "high"})
        assert settings.min_validation_score == 75

    def test_out_of_range_rejected(self) -> None:
        """Test validation bounds on the minimum score."""
        with pytest.raises(ValidationError):
            EngineSettings(min_validation_score=120)

    def test_heuristics_frozen(self) -> None:
        """Test heuristics are immutable once built."""
        heuristics = Heuristics()
        with pytest.raises(ValidationError):
            heuristics.perimeter_factor = 5.0


class TestMetrics:
    """Tests for metrics sinks."""

    def test_protocol(self) -> None:
        """Test the bundled sinks satisfy the protocol."""
        assert isinstance(NullMetricsSink(), MetricsSink)
        assert isinstance(LoggingMetricsSink(), MetricsSink)
        assert isinstance(RecordingSink(), MetricsSink)

    def test_timed(self) -> None:
        """Test the timing context reports with tags."""
        sink = RecordingSink()
        with timed(sink, "stage.duration", stage="parse"):
            pass
        assert sink.timings == [("stage.duration", {"stage": "parse"})]

    def test_logging_sink(self, caplog) -> None:
        """Test metrics are emitted as log records."""
        sink = LoggingMetricsSink(level=logging.INFO)
        with caplog.at_level(logging.INFO, logger="estimate_engine.utils.metrics"):
            sink.increment("lines.parsed", 3, stage="parse")
        assert "metric lines.parsed +3 stage=parse" in caplog.text


class TestCostBaseline:
    """Tests for the versioned cost baseline."""

    def test_default_table(self, baseline) -> None:
        """Test the bundled table's version stamp and lookups."""
        assert baseline.info.version == BASELINE_VERSION
        assert baseline.info.region == "US-NATIONAL"
        assert baseline.get("PNT_INTERIOR_WALL").min == Decimal("1.50")
        assert "DRY_REMOVE" in baseline

    def test_missing_key(self, baseline) -> None:
        """Test unknown keys raise a baseline error."""
        with pytest.raises(CostBaselineError):
            baseline.get("XYZ_NOTHING")

    def test_range_for_falls_back_to_trade(self, baseline) -> None:
        """Test trade-level fallback lookup."""
        assert baseline.range_for("INS", "BATT_R13") == baseline.get("INS_BATT_R13")
        assert baseline.range_for("INS", "SPRAY_FOAM") is not None
        assert baseline.range_for("ZZZ") is None

    def test_exposure(self, baseline) -> None:
        """Test quantity pricing and unit mismatch."""
        assert baseline.exposure("MLD_BASEBOARD", 40, "LF") == (Decimal("120.00"), Decimal("320.00"))
        assert baseline.exposure("MLD_BASEBOARD", 40, "SF") is None

    def test_from_json(self, tmp_path: Path) -> None:
        """Test loading a replacement table."""
        path = tmp_path / "baseline.json"
        path.write_text(
            json.dumps(
                {
                    "version": "2026.03-TX",
                    "effective_date": "2026-03-01",
                    "region": "US-TX",
                    "entries": {
                        "PNT_INTERIOR_WALL": {"min": "1.25", "max": "3.00", "unit": "SF"},
                    },
                }
            ),
            encoding="utf-8",
        )
        baseline = CostBaseline.from_json(path)
        assert baseline.info.version == "2026.03-TX"
        assert baseline.info.effective_date == date(2026, 3, 1)
        assert len(baseline) == 1

    def test_malformed(self, tmp_path: Path) -> None:
        """Test malformed tables raise a baseline error."""
        path = tmp_path / "baseline.json"
        path.write_text(json.dumps({"version": "x", "entries": {}}), encoding="utf-8")
        with pytest.raises(CostBaselineError):
            CostBaseline.from_json(path)
        with pytest.raises(CostBaselineError):
            CostBaseline.from_dict(
                {
                    "version": "x",
                    "effective_date": "2026-01-01",
                    "region": "US",
                    "entries": {"A_B": {"min": "5", "max": "1", "unit": "SF"}},
                }
            )
        with pytest.raises(CostBaselineError):
            CostBaseline.from_json(tmp_path / "missing.json")


class TestDocuments:
    """Tests for document loading."""

    def test_text_file(self, tmp_path: Path, tab_estimate_text: str) -> None:
        """Test plain text files are read as UTF-8."""
        path = tmp_path / "estimate.txt"
        path.write_text(tab_estimate_text, encoding="utf-8")
        assert load_text(path) == tab_estimate_text

    def test_pdf_tables_become_tab_rows(self, tmp_path: Path, monkeypatch) -> None:
        """Test PDF pages contribute their text and tab-joined table rows."""

        class FakePage:
            def extract_text(self) -> str:
                return "Estimate Summary"

            def extract_tables(self) -> list:
                return [[["DRY", "Remove drywall", "200", None], ["PNT", "Paint walls", "300", "SF"]]]

        class FakePdf:
            pages = [FakePage()]

            def __enter__(self):
                return self

            def __exit__(self, *exc) -> None:
                return None

        monkeypatch.setattr(documents.pdfplumber, "open", lambda source: FakePdf())
        text = load_text(tmp_path / "estimate.PDF")
        assert text == (
            "Estimate Summary\n\nDRY\tRemove drywall\t200\t\nPNT\tPaint walls\t300\tSF"
        )
