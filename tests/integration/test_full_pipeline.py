"""End-to-end tests for the scan pipeline."""

import json

import pytest
from pydantic import ValidationError

from contractsentry import ScanPipeline
from contractsentry.config.settings import ScanConfig, SeverityLevel
from contractsentry.core.errors import SourceTooLargeError
from contractsentry.core.registry import DetectorRegistry
from contractsentry.detectors import Detector, ReentrancyDetector
from contractsentry.models.finding import VulnerabilityType
from contractsentry.models.report import DetectorStatus, ScanStatus


class BrokenDetector(Detector):
    name = "Broken Detector"
    description = "Raises on every scan"
    vuln_type = VulnerabilityType.FLASH_LOAN_ATTACK

    def analyze(self, parsed):
        raise ValueError("unexpected parser output")


@pytest.fixture
def pipeline():
    return ScanPipeline()


def reentrancy_findings(report):
    return report.get_findings_by_type("reentrancy")


@pytest.mark.integration
class TestWithdrawScenario:
    """CEI ordering decides the reentrancy verdict."""

    @pytest.mark.asyncio
    async def test_effects_before_interaction(self, pipeline, safe_vault):
        report = await pipeline.analyze(safe_vault)

        assert report.status == ScanStatus.COMPLETED
        assert reentrancy_findings(report) == []

    @pytest.mark.asyncio
    async def test_interaction_before_effects(self, pipeline, vulnerable_vault):
        report = await pipeline.analyze(vulnerable_vault)
        findings = reentrancy_findings(report)

        assert len(findings) == 1
        assert findings[0].severity == SeverityLevel.CRITICAL
        assert findings[0].function_name == "withdraw"
        assert report.has_critical_findings
        assert report.summary.by_swc["SWC-107"] == 1

    @pytest.mark.asyncio
    async def test_report_contents(self, pipeline, vulnerable_vault):
        report = await pipeline.analyze(vulnerable_vault)

        assert report.contract_name == "Vault"
        assert report.pragma == "^0.8.0"
        assert report.source_hash == vulnerable_vault.content_hash
        assert len(report.detector_results) == 6
        assert all(r.status == DetectorStatus.SUCCESS for r in report.detector_results)
        assert report.summary.total == len(report.findings)
        assert report.metrics.function_count == 1
        assert report.metrics.external_calls == 1
        assert 0 < report.calculate_risk_score() <= 10


@pytest.mark.integration
class TestPipelineInputs:
    """Parser output accepted at the boundary."""

    @pytest.mark.asyncio
    async def test_camel_case_json(self, pipeline, vulnerable_vault):
        payload = json.dumps(vulnerable_vault.model_dump(mode="json", by_alias=True))
        assert "lineStart" in payload

        report = await pipeline.analyze(payload)

        assert len(reentrancy_findings(report)) == 1

    @pytest.mark.asyncio
    async def test_dict_input(self, pipeline, vulnerable_vault):
        report = await pipeline.analyze(vulnerable_vault.model_dump())
        assert len(reentrancy_findings(report)) == 1

    @pytest.mark.asyncio
    async def test_invalid_payload(self, pipeline):
        with pytest.raises(ValidationError):
            await pipeline.analyze({"contracts": [{"functions": []}]})

    @pytest.mark.asyncio
    async def test_source_too_large(self, pipeline, vulnerable_vault):
        config = ScanConfig(max_source_bytes=64)

        with pytest.raises(SourceTooLargeError) as exc_info:
            await pipeline.analyze(vulnerable_vault, config)

        assert exc_info.value.limit == 64
        assert exc_info.value.size == len(vulnerable_vault.source.encode("utf-8"))

    @pytest.mark.asyncio
    async def test_empty_unit(self, pipeline, empty_unit):
        report = await pipeline.analyze(empty_unit)

        assert report.status == ScanStatus.COMPLETED
        assert report.findings == []
        assert report.contract_name == "Unknown"


@pytest.mark.integration
class TestPipelineConfig:
    """Scan configuration flows through to the report."""

    @pytest.mark.asyncio
    async def test_detector_subset(self, pipeline, vulnerable_vault):
        report = await pipeline.analyze(vulnerable_vault, ScanConfig(detectors=["reentrancy"]))

        assert [r.detector_name for r in report.detector_results] == ["Reentrancy Detector"]
        assert {f.detector for f in report.findings} == {"Reentrancy Detector"}

    @pytest.mark.asyncio
    async def test_min_severity(self, pipeline, vulnerable_vault):
        report = await pipeline.analyze(vulnerable_vault, ScanConfig(min_severity=SeverityLevel.CRITICAL))
        assert all(f.severity == SeverityLevel.CRITICAL for f in report.findings)

    @pytest.mark.asyncio
    async def test_max_findings(self, pipeline, vulnerable_vault):
        report = await pipeline.analyze(vulnerable_vault, ScanConfig(max_findings=1))
        assert len(report.findings) == 1

    def test_sync_run(self, pipeline, vulnerable_vault):
        report = pipeline.run(vulnerable_vault)
        assert len(reentrancy_findings(report)) == 1


@pytest.mark.integration
class TestPartialFailure:
    """One failing detector does not sink the scan."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("parallel", [True, False])
    async def test_failure_recorded(self, vulnerable_vault, parallel):
        registry = DetectorRegistry([ReentrancyDetector(), BrokenDetector()])
        pipeline = ScanPipeline(registry=registry)

        report = await pipeline.analyze(vulnerable_vault, ScanConfig(parallel_detectors=parallel))

        assert report.status == ScanStatus.PARTIAL
        assert report.summary.failed_detectors == ["Broken Detector"]
        assert len(reentrancy_findings(report)) == 1
        failed = report.detector_results[1]
        assert failed.status == DetectorStatus.FAILED
        assert failed.error == "unexpected parser output"
