"""Registry of vulnerability detectors."""

import logging
import time
from typing import Dict, Iterable, List, Optional, Union

from contractsentry.detectors import (
    AccessControlDetector,
    Detector,
    FlashLoanDetector,
    IntegerOverflowDetector,
    OracleManipulationDetector,
    ReentrancyDetector,
    StateModificationDetector,
)
from contractsentry.models.contract import ParsedContract
from contractsentry.models.finding import VulnerabilityType, Web3Finding
from contractsentry.models.report import DetectorResult, DetectorStatus

logger = logging.getLogger(__name__)


def default_detectors() -> List[Detector]:
    """One instance of every built-in detector, in registration order."""
    return [
        ReentrancyDetector(),
        AccessControlDetector(),
        IntegerOverflowDetector(),
        StateModificationDetector(),
        FlashLoanDetector(),
        OracleManipulationDetector(),
    ]


def _type_tag(vuln_type: Union[str, VulnerabilityType]) -> str:
    return vuln_type.value if isinstance(vuln_type, VulnerabilityType) else vuln_type


class DetectorRegistry:
    """Ordered collection of detectors.

    Registration order is the order findings are reported in, whether the
    detectors run sequentially or concurrently.
    """

    def __init__(self, detectors: Optional[Iterable[Detector]] = None):
        self._detectors: List[Detector] = (
            list(detectors) if detectors is not None else default_detectors()
        )

    def __len__(self) -> int:
        return len(self._detectors)

    def __iter__(self):
        return iter(self._detectors)

    def register(self, detector: Detector) -> None:
        """Append a detector; it runs after all previously registered ones."""
        self._detectors.append(detector)

    def get_all(self) -> List[Detector]:
        return list(self._detectors)

    def get_by_type(self, vuln_type: Union[str, VulnerabilityType]) -> Optional[Detector]:
        tag = _type_tag(vuln_type)
        return next((d for d in self._detectors if d.vuln_type.value == tag), None)

    def get_by_swc(self, swc_id: str) -> List[Detector]:
        return [d for d in self._detectors if d.swc_id == swc_id]

    def list_detectors(self) -> List[Dict[str, Optional[str]]]:
        """Name, description, type and SWC reference of each detector."""
        return [d.describe() for d in self._detectors]

    def select(self, vuln_types: Optional[Iterable[str]] = None) -> List[Detector]:
        """Detectors whose type is in ``vuln_types`` (all when None), registration order kept."""
        if vuln_types is None:
            return self.get_all()
        wanted = {_type_tag(t) for t in vuln_types}
        return [d for d in self._detectors if d.vuln_type.value in wanted]

    def run_detector(self, detector: Detector, parsed: ParsedContract) -> DetectorResult:
        """Run one detector, turning any exception into a failed result."""
        start_time = time.time()
        try:
            findings = detector.analyze(parsed)
        except Exception as e:
            logger.exception("Detector %s failed", detector.name)
            return DetectorResult(
                detector_name=detector.name,
                vulnerability_type=detector.vuln_type.value,
                status=DetectorStatus.FAILED,
                execution_time=time.time() - start_time,
                error=str(e) or type(e).__name__,
            )

        return DetectorResult(
            detector_name=detector.name,
            vulnerability_type=detector.vuln_type.value,
            status=DetectorStatus.SUCCESS,
            findings=findings,
            execution_time=time.time() - start_time,
        )

    def run_all(
        self,
        parsed: ParsedContract,
        vuln_types: Optional[Iterable[str]] = None,
    ) -> List[DetectorResult]:
        """Run the selected detectors sequentially."""
        return [self.run_detector(d, parsed) for d in self.select(vuln_types)]

    def analyze_all(self, parsed: ParsedContract) -> List[Web3Finding]:
        """Findings of every detector, concatenated in registration order."""
        return [f for result in self.run_all(parsed) for f in result.findings]

    def analyze_types(
        self,
        parsed: ParsedContract,
        vuln_types: Iterable[Union[str, VulnerabilityType]],
    ) -> List[Web3Finding]:
        """Findings of the detectors for the given vulnerability types only."""
        return [f for result in self.run_all(parsed, vuln_types) for f in result.findings]
