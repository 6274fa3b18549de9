"""Tests for the command line interface."""

import json

import pytest
from click.testing import CliRunner
from rich.console import Console

from contractsentry.cli import main


@pytest.fixture
def runner(monkeypatch):
    # Wide console so tables are not folded; quiet logs so stdout stays parseable
    monkeypatch.setattr(main, "console", Console(width=200))
    monkeypatch.setenv("CONTRACTSENTRY_LOG_LEVEL", "WARNING")
    return CliRunner()


@pytest.fixture
def vulnerable_json(tmp_path, vulnerable_vault):
    path = tmp_path / "vault.json"
    path.write_text(vulnerable_vault.model_dump_json(by_alias=True))
    return path


@pytest.fixture
def safe_json(tmp_path, safe_vault):
    path = tmp_path / "safe.json"
    path.write_text(safe_vault.model_dump_json(by_alias=True))
    return path


@pytest.mark.integration
class TestScanCommand:
    """Test the scan command."""

    def test_summary_output(self, runner, vulnerable_json):
        result = runner.invoke(main.cli, ["scan", str(vulnerable_json)])

        assert result.exit_code == 0, result.output
        assert "Scan Complete!" in result.output
        assert "Reentrancy Vulnerability" in result.output
        assert "Vault.withdraw:6" in result.output

    def test_json_to_stdout(self, runner, vulnerable_json):
        result = runner.invoke(main.cli, ["scan", str(vulnerable_json), "--format", "json", "-d", "reentrancy"])

        assert result.exit_code == 0, result.output
        report = json.loads(result.output)
        assert report["contract_name"] == "Vault"
        assert [f["title"] for f in report["findings"]] == ["Reentrancy Vulnerability"]

    def test_json_to_file(self, runner, vulnerable_json, tmp_path):
        output = tmp_path / "reports" / "vault-report.json"
        result = runner.invoke(main.cli, [
            "scan", str(vulnerable_json),
            "--format", "json",
            "--output", str(output),
            "--sequential",
            "--min-severity", "critical",
        ])

        assert result.exit_code == 0, result.output
        report = json.loads(output.read_text())
        assert report["status"] == "completed"
        assert report["findings"]
        assert all(f["severity"] == "critical" for f in report["findings"])

    def test_max_findings(self, runner, vulnerable_json, tmp_path):
        output = tmp_path / "report.json"
        result = runner.invoke(main.cli, [
            "scan", str(vulnerable_json), "-f", "json", "-o", str(output), "--max-findings", "1",
        ])

        assert result.exit_code == 0, result.output
        assert len(json.loads(output.read_text())["findings"]) == 1

    def test_fail_on_critical(self, runner, vulnerable_json, safe_json):
        vulnerable = runner.invoke(main.cli, ["scan", str(vulnerable_json), "-d", "reentrancy", "--fail-on-critical"])
        safe = runner.invoke(main.cli, ["scan", str(safe_json), "-d", "reentrancy", "--fail-on-critical"])

        assert vulnerable.exit_code == 2
        assert safe.exit_code == 0, safe.output

    def test_invalid_payload(self, runner, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text('{"contracts": [{"functions": "nope"}]}')

        result = runner.invoke(main.cli, ["scan", str(path)])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_source_too_large(self, runner, vulnerable_json, monkeypatch):
        monkeypatch.setenv("CONTRACTSENTRY_MAX_SOURCE_BYTES", "32")

        result = runner.invoke(main.cli, ["scan", str(vulnerable_json)])

        assert result.exit_code == 1
        assert "limit is 32 bytes" in result.output

    def test_unknown_detector_rejected(self, runner, vulnerable_json):
        result = runner.invoke(main.cli, ["scan", str(vulnerable_json), "-d", "gas-griefing"])
        assert result.exit_code == 2

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(main.cli, ["scan", str(tmp_path / "absent.json")])
        assert result.exit_code == 2


@pytest.mark.integration
class TestDetectorsCommand:
    """Test the detectors listing."""

    def test_lists_all_detectors(self, runner):
        result = runner.invoke(main.cli, ["detectors"])

        assert result.exit_code == 0, result.output
        for name in (
            "Reentrancy Detector",
            "Access Control Detector",
            "Integer Overflow Detector",
            "State Modification Detector",
            "Flash Loan Detector",
            "Oracle Manipulation Detector",
        ):
            assert name in result.output
        assert "SWC-107" in result.output

    def test_disabled_detector_shown(self, runner, monkeypatch):
        monkeypatch.setenv("CONTRACTSENTRY_DETECTORS__REENTRANCY__ENABLED", "false")

        result = runner.invoke(main.cli, ["detectors"])

        assert result.exit_code == 0, result.output
        assert "Disabled" in result.output

    def test_version(self, runner):
        result = runner.invoke(main.cli, ["--version"])
        assert "0.1.0" in result.output
