"""
Tests for the estimate-engine command line.
"""

import json
import os
from pathlib import Path

import pytest

from estimate_engine.cli import EXIT_ERROR, EXIT_OK, EXIT_REFUSED, load_directives, load_rooms, main
from estimate_engine.core.findings import ParsedReport


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep host settings and .env files out of the CLI."""
    for name in list(os.environ):
        if name.startswith("ESTIMATE_ENGINE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def estimate_file(tmp_path: Path, tab_estimate_text: str) -> Path:
    path = tmp_path / "estimate.txt"
    path.write_text(tab_estimate_text, encoding="utf-8")
    return path


class TestParseCommand:
    """Tests for ``estimate-engine parse``."""

    def test_parse(self, estimate_file: Path, capsys) -> None:
        """Test the layout summary and line item table."""
        assert main(["parse", str(estimate_file)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Format: tab_separated" in out
        assert "Parsed: 3  Rejected: 0  Scanned: 3" in out
        assert "Total RCV: $1,750.00" in out

    def test_parse_json(self, estimate_file: Path, capsys) -> None:
        """Test the JSON form of the parsed estimate."""
        assert main(["parse", str(estimate_file), "--json"]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert len(data["line_items"]) == 3
        assert data["totals"]["rcv"] == "1750.00"

    def test_parse_unrecognized(self, tmp_path: Path, unrecognized_text: str, capsys) -> None:
        """Test an undetectable layout exits with the refusal code."""
        path = tmp_path / "notes.txt"
        path.write_text(unrecognized_text, encoding="utf-8")
        assert main(["parse", str(path)]) == EXIT_REFUSED
        assert "Format detection failed" in capsys.readouterr().out


class TestAnalyzeCommand:
    """Tests for ``estimate-engine analyze``."""

    def test_analyze_text(self, estimate_file: Path, capsys) -> None:
        """Test the text report is printed."""
        assert main(["analyze", str(estimate_file)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "ESTIMATE INTEGRITY REPORT" in out
        assert "Structural Integrity Score: 71/100" in out

    def test_analyze_json(self, estimate_file: Path, capsys) -> None:
        """Test the JSON report."""
        assert main(["analyze", str(estimate_file), "--json"]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["intelligence"]["structural_integrity_score"] == 71
        assert data["deviations"] is None

    def test_analyze_with_rooms(self, estimate_file: Path, tmp_path: Path, rooms, capsys) -> None:
        """Test a rooms file and explicit scope rule reach the engine."""
        rooms_file = tmp_path / "rooms.json"
        rooms_file.write_text(json.dumps({"rooms": rooms}), encoding="utf-8")
        code = main(
            [
                "analyze",
                str(estimate_file),
                "--rooms",
                str(rooms_file),
                "--scope-rule",
                "4FT_CUT",
                "--json",
            ]
        )
        assert code == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["scope_rule"] == "4FT_CUT"
        assert data["expected_quantities"]["total_wall_sf"] == 280

    def test_low_confidence_refused(self, tmp_path: Path, capsys) -> None:
        """Test a parse below --min-score is refused."""
        path = tmp_path / "estimate.txt"
        path.write_text(
            "DRY  Remove wet drywall  200  SF  $700.00  $630.00\n"
            "PNT  Paint walls  300  SF  $450.00  $450.00\n"
            "FLR  Install new laminate flooring  100  SF  $600.00  $540.00",
            encoding="utf-8",
        )
        assert main(["analyze", str(path), "--min-score", "85"]) == EXIT_REFUSED
        err = capsys.readouterr().err
        assert "Refused [LOW_CONFIDENCE]" in err
        assert "Remediation:" in err

    def test_invalid_rooms_refused(self, estimate_file: Path, tmp_path: Path, capsys) -> None:
        """Test invalid geometry lists every error."""
        rooms_file = tmp_path / "rooms.json"
        rooms_file.write_text(
            json.dumps([{"name": "Den", "length": 0, "width": 150, "height": 8}]),
            encoding="utf-8",
        )
        assert main(["analyze", str(estimate_file), "--rooms", str(rooms_file)]) == EXIT_REFUSED
        err = capsys.readouterr().err
        assert "Refused [INVALID_GEOMETRY]" in err
        assert '  - Room "Den": Invalid length (0)' in err
        assert '  - Room "Den": Width 150 ft exceeds 100 ft' in err

    def test_missing_file(self, tmp_path: Path, capsys) -> None:
        """Test an unreadable estimate is a plain error."""
        assert main(["analyze", str(tmp_path / "missing.txt")]) == EXIT_ERROR
        assert capsys.readouterr().err.startswith("Error:")


class TestInputFiles:
    """Tests for rooms and directives loaders."""

    def test_load_rooms(self, tmp_path: Path, rooms) -> None:
        """Test both the bare list and wrapped object forms."""
        listed = tmp_path / "list.json"
        listed.write_text(json.dumps(rooms), encoding="utf-8")
        wrapped = tmp_path / "wrapped.json"
        wrapped.write_text(json.dumps({"rooms": rooms}), encoding="utf-8")
        assert load_rooms(str(listed)) == rooms
        assert load_rooms(str(wrapped)) == rooms

    def test_load_rooms_rejects_scalars(self, tmp_path: Path) -> None:
        """Test a non-list rooms file is a value error."""
        path = tmp_path / "rooms.json"
        path.write_text("42", encoding="utf-8")
        with pytest.raises(ValueError):
            load_rooms(str(path))

    def test_load_directives(self, tmp_path: Path) -> None:
        """Test lists pass through and objects become a ParsedReport."""
        directive = {"trade": "INS", "directiveType": "REMOVE", "quantityRule": "FULL_HEIGHT"}
        listed = tmp_path / "list.json"
        listed.write_text(json.dumps([directive]), encoding="utf-8")
        report = tmp_path / "report.json"
        report.write_text(
            json.dumps({"report_type": "HYGIENIST", "directives": [directive]}), encoding="utf-8"
        )

        assert load_directives(str(listed)) == [directive]
        parsed = load_directives(str(report))
        assert isinstance(parsed, ParsedReport)
        assert parsed.directives[0].trade == "INS"
