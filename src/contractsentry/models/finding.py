"""Finding data models."""

from typing import Any, Dict, List, Mapping, Optional
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from contractsentry.config.settings import SeverityLevel


class VulnerabilityType(str, Enum):
    """Smart contract vulnerability families reported by the detectors."""

    REENTRANCY = "reentrancy"                                    # SWC-107
    ACCESS_CONTROL = "access-control"                            # SWC-105
    TX_ORIGIN_AUTH = "tx-origin-auth"                            # SWC-115
    INTEGER_OVERFLOW = "integer-overflow"                        # SWC-101
    INTEGER_UNDERFLOW = "integer-underflow"                      # SWC-101
    ORACLE_MANIPULATION = "oracle-manipulation"
    FLASH_LOAN_ATTACK = "flash-loan-attack"
    UNPROTECTED_STATE_MODIFICATION = "unprotected-state-modification"


class ExploitComplexity(str, Enum):
    """How hard a finding is to exploit."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SecurityFinding(BaseModel):
    """Generic security finding shared with the rest of the toolchain."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    severity: SeverityLevel
    title: str
    description: str
    remediation: str = ""
    references: List[str] = Field(default_factory=list)
    category: str
    timestamp: datetime = Field(default_factory=datetime.now)


class Web3Finding(SecurityFinding):
    """Smart contract finding emitted by a detector."""

    category: str = "smart-contract"
    evidence: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    vulnerability_type: VulnerabilityType
    detector: str = ""
    contract_name: str
    function_name: Optional[str] = None
    line_number: Optional[int] = Field(default=None, ge=1)
    swc_id: Optional[str] = None
    exploit_scenario: str = ""
    exploit_complexity: ExploitComplexity = ExploitComplexity.MEDIUM

    @field_validator("evidence")
    @classmethod
    def freeze_evidence(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        """Store evidence read-only so a finding cannot be edited after construction."""
        return MappingProxyType(dict(v))

    @field_serializer("evidence")
    def serialize_evidence(self, v: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(v)

    @property
    def location(self) -> str:
        """Human-readable ``Contract.function:line`` location."""
        where = self.contract_name
        if self.function_name:
            where = f"{where}.{self.function_name}"
        if self.line_number is not None:
            where = f"{where}:{self.line_number}"
        return where

    def identity_key(self) -> tuple:
        """Key shared by findings that are duplicates of one another.

        Fresh ``id``/``timestamp`` values are ignored so two scans of the same
        input produce equal keys.
        """
        return (
            self.detector,
            self.severity.value,
            self.vulnerability_type.value,
            self.title,
            self.contract_name,
            self.function_name,
            self.line_number,
            repr(sorted(self.evidence.items())),
        )
