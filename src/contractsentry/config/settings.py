"""Configuration settings for ContractSentry using Pydantic."""

from typing import Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SeverityLevel(str, Enum):
    """Vulnerability severity levels."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Numeric weight, higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    SeverityLevel.INFO: 1,
    SeverityLevel.LOW: 2,
    SeverityLevel.MEDIUM: 3,
    SeverityLevel.HIGH: 4,
    SeverityLevel.CRITICAL: 5,
}


DEFAULT_DETECTOR_TYPES = [
    "reentrancy",
    "access-control",
    "integer-overflow",
    "unprotected-state-modification",
    "flash-loan-attack",
    "oracle-manipulation",
]


class DetectorConfig(BaseModel):
    """Configuration for an individual detector."""

    enabled: bool = True


class ScanConfig(BaseModel):
    """Configuration for a single scan run."""

    detectors: Optional[List[str]] = Field(
        default=None,
        description="Vulnerability types to run (None = all enabled detectors)"
    )

    # Performance options
    parallel_detectors: bool = Field(default=True, description="Run detectors concurrently")

    # Output options
    min_severity: SeverityLevel = Field(
        default=SeverityLevel.INFO,
        description="Minimum severity to report"
    )
    max_findings: Optional[int] = Field(
        default=None,
        ge=0,
        description="Truncate the finding list after this many entries"
    )
    deduplicate: bool = Field(default=True, description="Collapse identical findings of one detector")

    # Resource limits
    max_source_bytes: int = Field(
        default=1024 * 1024,
        gt=0,
        description="Largest source unit accepted for scanning"
    )

    @field_validator("detectors")
    @classmethod
    def validate_detectors(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Reject unknown vulnerability types early."""
        if v is None:
            return v
        unknown = [name for name in v if name not in DEFAULT_DETECTOR_TYPES]
        if unknown:
            raise ValueError(f"Unknown detector type(s): {', '.join(unknown)}")
        return v


class Settings(BaseSettings):
    """Global application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CONTRACTSENTRY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format (json, text)")

    # Performance
    max_workers: int = Field(default=4, description="Maximum parallel detector threads")
    max_source_bytes: int = Field(default=1024 * 1024, description="Largest accepted source unit")

    # Detector configurations, keyed by vulnerability type
    detectors: Dict[str, DetectorConfig] = Field(
        default_factory=lambda: {
            name: DetectorConfig() for name in DEFAULT_DETECTOR_TYPES
        }
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and validate the logging level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only text and json log output are supported."""
        fmt = v.lower()
        if fmt not in {"text", "json"}:
            raise ValueError(f"Invalid log format: {v}")
        return fmt

    def get_detector_config(self, vuln_type: str) -> DetectorConfig:
        """Get configuration for a specific detector."""
        return self.detectors.get(vuln_type, DetectorConfig())

    def enabled_detector_types(self) -> List[str]:
        """Vulnerability types whose detectors are enabled, in registration order."""
        return [
            name for name in DEFAULT_DETECTOR_TYPES
            if self.get_detector_config(name).enabled
        ]

    def default_scan_config(self) -> ScanConfig:
        """Build a scan configuration honouring the enabled detectors."""
        enabled = self.enabled_detector_types()
        return ScanConfig(
            detectors=None if len(enabled) == len(DEFAULT_DETECTOR_TYPES) else enabled,
            max_source_bytes=self.max_source_bytes,
        )
