"""Shared utilities for ContractSentry."""

from contractsentry.utils.source import (
    body_line_number,
    contract_spans,
    declares_locally,
    extract_solidity_version,
    is_vulnerable_to_overflow,
    line_number_at,
    parse_version_floor,
)

__all__ = [
    "body_line_number",
    "contract_spans",
    "declares_locally",
    "extract_solidity_version",
    "is_vulnerable_to_overflow",
    "line_number_at",
    "parse_version_floor",
]
