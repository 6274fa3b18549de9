"""Aggregation of detector results into a scan report."""

import re
from collections import Counter
from datetime import datetime
from typing import Iterable, List, Optional

from contractsentry.config.settings import ScanConfig, SeverityLevel
from contractsentry.models.contract import ParsedContract, Visibility
from contractsentry.models.finding import Web3Finding
from contractsentry.models.report import (
    CodeMetrics,
    DetectorResult,
    DetectorStatus,
    ScanReport,
    ScanStatus,
    ScanSummary,
)

_EXTERNAL_CALL = re.compile(r"\.(?:call|send|transfer|delegatecall)\s*(?:\{[^}]*\})?\s*\(")
_COMMENT_PREFIXES = ("//", "/*", "*")


class FindingAggregator:
    """Combines per-detector results into ordered, filtered, summarized findings."""

    def summarize(
        self,
        findings: Iterable[Web3Finding],
        failed_detectors: Optional[List[str]] = None,
    ) -> ScanSummary:
        findings = list(findings)
        severities = Counter(f.severity for f in findings)
        by_type = Counter(f.vulnerability_type.value for f in findings)
        by_swc = Counter(f.swc_id for f in findings if f.swc_id)

        return ScanSummary(
            total=len(findings),
            critical=severities[SeverityLevel.CRITICAL],
            high=severities[SeverityLevel.HIGH],
            medium=severities[SeverityLevel.MEDIUM],
            low=severities[SeverityLevel.LOW],
            info=severities[SeverityLevel.INFO],
            by_type=dict(by_type),
            by_swc=dict(by_swc),
            failed_detectors=list(failed_detectors or []),
        )

    def filter_by_severity(
        self,
        findings: Iterable[Web3Finding],
        min_severity: SeverityLevel,
    ) -> List[Web3Finding]:
        """Findings at or above ``min_severity``, order preserved."""
        return [f for f in findings if f.severity.rank >= min_severity.rank]

    def limit(self, findings: List[Web3Finding], max_findings: Optional[int]) -> List[Web3Finding]:
        if max_findings is None:
            return list(findings)
        return list(findings[:max_findings])

    def deduplicate(self, findings: Iterable[Web3Finding]) -> List[Web3Finding]:
        """Drop repeats of an identical finding from the same detector.

        Findings from different detectors are never merged, even when they
        describe the same location.
        """
        seen = set()
        unique = []
        for finding in findings:
            key = finding.identity_key()
            if key in seen:
                continue
            seen.add(key)
            unique.append(finding)
        return unique

    def calculate_metrics(self, parsed: ParsedContract) -> CodeMetrics:
        lines = parsed.source.splitlines()
        stripped = [line.strip() for line in lines]

        functions = [f for c in parsed.contracts for f in c.functions]
        return CodeMetrics(
            total_lines=len(lines),
            code_lines=sum(1 for s in stripped if s and not s.startswith(("//", "/*"))),
            comment_lines=sum(1 for s in stripped if s.startswith(_COMMENT_PREFIXES)),
            contract_count=len(parsed.contracts),
            function_count=len(functions),
            public_functions=sum(
                1 for f in functions if f.visibility in (Visibility.PUBLIC, Visibility.EXTERNAL)
            ),
            external_calls=sum(len(_EXTERNAL_CALL.findall(f.body or "")) for f in functions),
            state_variables=sum(len(c.state_variables) for c in parsed.contracts),
        )

    def build_report(
        self,
        parsed: ParsedContract,
        results: List[DetectorResult],
        config: Optional[ScanConfig] = None,
        started_at: Optional[datetime] = None,
    ) -> ScanReport:
        """Assemble the report from detector results given in registration order."""
        config = config or ScanConfig()

        findings = [f for result in results for f in result.findings]
        if config.deduplicate:
            findings = self.deduplicate(findings)
        findings = self.filter_by_severity(findings, config.min_severity)
        findings = self.limit(findings, config.max_findings)

        failed = [r.detector_name for r in results if r.status == DetectorStatus.FAILED]
        notes = [f"{r.detector_name}: {r.error}" for r in results if r.status == DetectorStatus.FAILED]

        if not failed:
            status = ScanStatus.COMPLETED
        elif len(failed) == len(results):
            status = ScanStatus.FAILED
        else:
            status = ScanStatus.PARTIAL

        return ScanReport(
            contract_name=self._report_name(parsed),
            pragma=parsed.pragma,
            source_hash=parsed.content_hash,
            status=status,
            started_at=started_at or datetime.now(),
            completed_at=datetime.now(),
            findings=findings,
            summary=self.summarize(findings, failed),
            detector_results=results,
            metrics=self.calculate_metrics(parsed),
            notes=notes,
        )

    @staticmethod
    def _report_name(parsed: ParsedContract) -> str:
        if parsed.contracts:
            return parsed.contracts[0].name
        return parsed.name or "Unknown"
