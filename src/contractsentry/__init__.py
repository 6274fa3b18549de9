"""ContractSentry - pattern-based Solidity vulnerability detection.

Runs a fixed set of detectors (reentrancy, access control, integer
overflow, state modification, flash loan, oracle manipulation) over parser
output and reports evidence-bearing findings.
"""

__version__ = "0.1.0"

from contractsentry.core.pipeline import ScanPipeline, load_parsed_contract

__all__ = ["ScanPipeline", "load_parsed_contract"]
