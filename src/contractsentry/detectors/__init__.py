"""Pattern-based vulnerability detectors for parsed Solidity source."""

from contractsentry.detectors.base import Detector
from contractsentry.detectors.reentrancy import ReentrancyDetector
from contractsentry.detectors.access_control import AccessControlDetector
from contractsentry.detectors.integer_overflow import IntegerOverflowDetector
from contractsentry.detectors.oracle_manipulation import OracleManipulationDetector
from contractsentry.detectors.flash_loan import FlashLoanDetector
from contractsentry.detectors.state_modification import StateModificationDetector

__all__ = [
    "Detector",
    "ReentrancyDetector",
    "AccessControlDetector",
    "IntegerOverflowDetector",
    "OracleManipulationDetector",
    "FlashLoanDetector",
    "StateModificationDetector",
]
