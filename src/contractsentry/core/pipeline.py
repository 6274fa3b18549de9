"""Main scan pipeline orchestrator."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from contractsentry.config.settings import ScanConfig, Settings
from contractsentry.core.aggregator import FindingAggregator
from contractsentry.core.errors import SourceTooLargeError
from contractsentry.core.registry import DetectorRegistry
from contractsentry.detectors import Detector
from contractsentry.models.contract import ParsedContract
from contractsentry.models.report import DetectorResult, ScanReport

logger = logging.getLogger(__name__)

ParsedInput = Union[ParsedContract, Dict[str, Any], str, bytes]


def load_parsed_contract(data: ParsedInput) -> ParsedContract:
    """Coerce parser output into a ParsedContract.

    Accepts a model instance, a dict, or JSON text with camelCase or
    snake_case keys.

    Raises:
        pydantic.ValidationError: if the payload does not describe a source unit
    """
    if isinstance(data, ParsedContract):
        return data
    if isinstance(data, (str, bytes)):
        return ParsedContract.model_validate_json(data)
    return ParsedContract.model_validate(data)


class ScanPipeline:
    """Runs the registered detectors over one parsed source unit."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[DetectorRegistry] = None,
        aggregator: Optional[FindingAggregator] = None,
    ):
        """Initialize the pipeline with settings."""
        self.settings = settings or Settings()
        self.registry = registry or DetectorRegistry()
        self.aggregator = aggregator or FindingAggregator()

    async def analyze(
        self,
        parsed: ParsedInput,
        config: Optional[ScanConfig] = None,
    ) -> ScanReport:
        """Scan a parsed source unit.

        Args:
            parsed: Parser output as a model, dict or JSON text
            config: Scan configuration; defaults to the settings' enabled detectors

        Returns:
            Complete scan report. Detector failures are recorded in it rather
            than raised.

        Raises:
            SourceTooLargeError: if the source exceeds ``config.max_source_bytes``
        """
        config = config or self.settings.default_scan_config()
        parsed = load_parsed_contract(parsed)
        self._check_size(parsed, config)

        detectors = self.registry.select(config.detectors)
        started_at = datetime.now()
        logger.info(
            "Scanning %s with %d detector(s)",
            parsed.name or ", ".join(parsed.contract_names) or "<empty>",
            len(detectors),
        )

        if config.parallel_detectors and len(detectors) > 1:
            results = await self._run_parallel(detectors, parsed)
        else:
            results = [self.registry.run_detector(d, parsed) for d in detectors]

        report = self.aggregator.build_report(parsed, results, config, started_at)
        logger.info(
            "Scan of %s finished: %s, %d finding(s)",
            report.contract_name,
            report.status.value,
            report.summary.total,
        )
        return report

    def run(self, parsed: ParsedInput, config: Optional[ScanConfig] = None) -> ScanReport:
        """Synchronous wrapper around :meth:`analyze`."""
        return asyncio.run(self.analyze(parsed, config))

    async def _run_parallel(self, detectors: List[Detector], parsed: ParsedContract) -> List[DetectorResult]:
        # gather preserves argument order, so results stay in registration order
        semaphore = asyncio.Semaphore(max(1, self.settings.max_workers))

        async def run_one(detector: Detector) -> DetectorResult:
            async with semaphore:
                return await asyncio.to_thread(self.registry.run_detector, detector, parsed)

        return list(await asyncio.gather(*(run_one(d) for d in detectors)))

    @staticmethod
    def _check_size(parsed: ParsedContract, config: ScanConfig) -> None:
        size = len(parsed.source.encode("utf-8"))
        if size > config.max_source_bytes:
            raise SourceTooLargeError(size, config.max_source_bytes)

    def save_report(self, report: ScanReport, output_path: Path) -> None:
        """Write the report as JSON."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
