"""Data models for ContractSentry."""

from contractsentry.models.contract import (
    Contract,
    ContractKind,
    Function,
    Parameter,
    ParsedContract,
    StateMutability,
    StateVariable,
    Visibility,
)
from contractsentry.models.finding import (
    ExploitComplexity,
    SecurityFinding,
    VulnerabilityType,
    Web3Finding,
)
from contractsentry.models.report import (
    CodeMetrics,
    DetectorResult,
    DetectorStatus,
    ScanReport,
    ScanStatus,
    ScanSummary,
)

__all__ = [
    "Contract",
    "ContractKind",
    "Function",
    "Parameter",
    "ParsedContract",
    "StateMutability",
    "StateVariable",
    "Visibility",
    "ExploitComplexity",
    "SecurityFinding",
    "VulnerabilityType",
    "Web3Finding",
    "CodeMetrics",
    "DetectorResult",
    "DetectorStatus",
    "ScanReport",
    "ScanStatus",
    "ScanSummary",
]
