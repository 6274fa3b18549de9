"""Scan report data models."""

from typing import Dict, List, Optional
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from contractsentry.models.finding import Web3Finding
from contractsentry.config.settings import SeverityLevel


class ScanStatus(str, Enum):
    """Status of a scan run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class DetectorStatus(str, Enum):
    """Status of one detector's execution."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class DetectorResult(BaseModel):
    """Result from a single detector."""

    detector_name: str
    vulnerability_type: str
    status: DetectorStatus
    findings: List[Web3Finding] = Field(default_factory=list)
    execution_time: float = 0.0
    error: Optional[str] = None

    @property
    def findings_count(self) -> int:
        return len(self.findings)


class ScanSummary(BaseModel):
    """Severity rollup for a scan."""

    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_swc: Dict[str, int] = Field(default_factory=dict)
    failed_detectors: List[str] = Field(default_factory=list)

    def count(self, severity: SeverityLevel) -> int:
        """Number of findings at the given severity."""
        return getattr(self, severity.value)


class CodeMetrics(BaseModel):
    """Size and surface metrics for the scanned source unit."""

    total_lines: int = 0
    code_lines: int = 0
    comment_lines: int = 0
    contract_count: int = 0
    function_count: int = 0
    public_functions: int = 0
    external_calls: int = 0
    state_variables: int = 0


class ScanReport(BaseModel):
    """Complete scan report for one parsed source unit."""

    # Identification
    id: UUID = Field(default_factory=uuid4)
    contract_name: str
    pragma: Optional[str] = None
    source_hash: Optional[str] = None

    # Status
    status: ScanStatus = ScanStatus.PENDING
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    # Results
    findings: List[Web3Finding] = Field(default_factory=list)
    summary: ScanSummary = Field(default_factory=ScanSummary)
    detector_results: List[DetectorResult] = Field(default_factory=list)
    metrics: CodeMetrics = Field(default_factory=CodeMetrics)

    # Additional info
    notes: List[str] = Field(default_factory=list)

    @property
    def duration(self) -> Optional[timedelta]:
        """Calculate total scan duration."""
        if self.completed_at:
            return self.completed_at - self.started_at
        return None

    @property
    def has_critical_findings(self) -> bool:
        """Check if any critical vulnerabilities found."""
        return any(f.severity == SeverityLevel.CRITICAL for f in self.findings)

    def get_findings_by_severity(self, severity: SeverityLevel) -> List[Web3Finding]:
        """Get findings filtered by severity."""
        return [f for f in self.findings if f.severity == severity]

    def get_findings_by_type(self, vuln_type: str) -> List[Web3Finding]:
        """Get findings filtered by vulnerability type tag."""
        return [f for f in self.findings if f.vulnerability_type.value == vuln_type]

    def calculate_risk_score(self) -> float:
        """Calculate overall risk score (0-10)."""
        if not self.findings:
            return 0.0

        severity_weights = {
            SeverityLevel.CRITICAL: 10.0,
            SeverityLevel.HIGH: 7.5,
            SeverityLevel.MEDIUM: 5.0,
            SeverityLevel.LOW: 2.5,
            SeverityLevel.INFO: 0.5,
        }

        # Worst finding dominates, the rest nudge the score upward
        weights = sorted((severity_weights[f.severity] for f in self.findings), reverse=True)
        score = weights[0] + sum(w * 0.05 for w in weights[1:])
        return round(min(10.0, score), 1)

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        summary_parts = [
            f"Scan Report for {self.contract_name}",
            f"Status: {self.status.value}",
            f"Duration: {self.duration or 'In progress'}",
            "",
            "Findings Summary:",
            f"- Total Findings: {self.summary.total}",
        ]

        for severity in SeverityLevel:
            count = self.summary.count(severity)
            if count > 0:
                summary_parts.append(f"  - {severity.value.upper()}: {count}")

        if self.summary.failed_detectors:
            summary_parts.extend([
                "",
                f"Failed Detectors: {', '.join(self.summary.failed_detectors)}",
            ])

        summary_parts.extend([
            "",
            f"Risk Score: {self.calculate_risk_score():.1f}/10",
        ])

        return "\n".join(summary_parts)
