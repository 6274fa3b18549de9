"""Configuration for ContractSentry."""

from contractsentry.config.settings import (
    DetectorConfig,
    ScanConfig,
    Settings,
    SeverityLevel,
)

__all__ = ["DetectorConfig", "ScanConfig", "Settings", "SeverityLevel"]
