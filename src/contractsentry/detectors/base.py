"""Base class for vulnerability detectors."""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple, Union

from contractsentry.config.settings import SeverityLevel
from contractsentry.core.errors import DetectorConfigurationError
from contractsentry.models.contract import (
    Function,
    ParsedContract,
    StateMutability,
    Visibility,
)
from contractsentry.models.finding import (
    ExploitComplexity,
    VulnerabilityType,
    Web3Finding,
)

logger = logging.getLogger(__name__)

PatternSpec = Union[str, Tuple[str, int]]


def compile_patterns(specs: Iterable[PatternSpec], flags: int = 0) -> Tuple[Pattern[str], ...]:
    """Compile a pattern table once, at detector construction.

    Entries are either a pattern string or a ``(pattern, flags)`` pair.

    Raises:
        DetectorConfigurationError: if any pattern fails to compile
    """
    compiled = []
    for spec in specs:
        pattern, extra = (spec, 0) if isinstance(spec, str) else spec
        try:
            compiled.append(re.compile(pattern, flags | extra))
        except re.error as e:
            raise DetectorConfigurationError(f"Invalid pattern {pattern!r}: {e}") from e
    return tuple(compiled)


def any_match(patterns: Iterable[Pattern[str]], text: str) -> bool:
    """True if any pattern matches somewhere in ``text``."""
    return any(p.search(text) for p in patterns)


class Detector(ABC):
    """Abstract base class for all vulnerability detectors.

    A detector is a pure function from a parsed source unit to findings. It
    holds only immutable, precompiled pattern tables, so one instance can be
    shared across threads and scans.
    """

    name: str = ""
    description: str = ""
    vuln_type: VulnerabilityType
    swc_id: Optional[str] = None

    @abstractmethod
    def analyze(self, parsed: ParsedContract) -> List[Web3Finding]:
        """Analyze a parsed source unit and return findings.

        Args:
            parsed: Parser output; never mutated

        Returns:
            Findings in source order (contracts, then functions)
        """

    def describe(self) -> Dict[str, Optional[str]]:
        """Name, description, type and SWC reference of this detector."""
        return {
            "name": self.name,
            "description": self.description,
            "vuln_type": self.vuln_type.value,
            "swc_id": self.swc_id,
        }

    # Function classification shared by the detectors

    @staticmethod
    def _function_body(func: Function) -> str:
        return func.body or ""

    @staticmethod
    def _is_entry_point(func: Function) -> bool:
        return func.visibility in (Visibility.PUBLIC, Visibility.EXTERNAL)

    @staticmethod
    def _is_state_mutating(func: Function) -> bool:
        return func.state_mutability not in (StateMutability.VIEW, StateMutability.PURE)

    @staticmethod
    def _is_constructor(func: Function) -> bool:
        return func.is_constructor

    def _build_finding(
        self,
        *,
        severity: SeverityLevel,
        title: str,
        description: str,
        remediation: str,
        references: List[str],
        contract_name: str,
        exploit_scenario: str,
        exploit_complexity: ExploitComplexity,
        evidence: Optional[Dict[str, Any]] = None,
        function_name: Optional[str] = None,
        line_number: Optional[int] = None,
        vulnerability_type: Optional[VulnerabilityType] = None,
        swc_id: Optional[str] = None,
    ) -> Web3Finding:
        """Construct a finding stamped with this detector's identity."""
        return Web3Finding(
            severity=severity,
            title=title,
            description=description,
            remediation=remediation,
            references=references,
            evidence=evidence or {},
            vulnerability_type=vulnerability_type or self.vuln_type,
            detector=self.name,
            contract_name=contract_name,
            function_name=function_name,
            line_number=line_number,
            swc_id=swc_id if swc_id is not None else self.swc_id,
            exploit_scenario=exploit_scenario,
            exploit_complexity=exploit_complexity,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(vuln_type={self.vuln_type.value!r})"
