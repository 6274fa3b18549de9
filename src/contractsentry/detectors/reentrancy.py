"""Reentrancy detector (SWC-107).

Flags public/external state-mutating functions that perform an external call
before a later state write, i.e. violate Checks-Effects-Interactions.
"""

import logging
import re
from typing import List, NamedTuple, Optional

from contractsentry.config.settings import SeverityLevel
from contractsentry.detectors.base import Detector, any_match, compile_patterns
from contractsentry.models.contract import Contract, Function, ParsedContract
from contractsentry.models.finding import ExploitComplexity, VulnerabilityType, Web3Finding
from contractsentry.utils.source import declares_locally

logger = logging.getLogger(__name__)

# Assignable expression: identifier with optional index and member accesses
_LVALUE = (
    r"\b(?P<target>[A-Za-z_]\w*)"
    r"(?:\s*\[[^\]]*\])*"
    r"(?:\s*\.\s*[A-Za-z_]\w*(?:\s*\[[^\]]*\])*)*"
)

EXTERNAL_CALL_PATTERNS = (
    r"\.(?:call|delegatecall|staticcall)\s*(?:\{[^}]*\})?\s*\(",
    r"\.(?:send|transfer)\s*\(",
)

STATE_CHANGE_PATTERNS = (
    _LVALUE + r"\s*=(?![=>])",                              # assignment
    _LVALUE + r"\s*(?:\+|-|\*|/|%|\||&|\^|<<|>>)=",         # compound assignment
    _LVALUE + r"\s*(?:\+\+|--)",                            # postfix increment/decrement
    r"(?:\+\+|--)\s*" + _LVALUE,                            # prefix increment/decrement
    r"\bdelete\s+" + _LVALUE,
    _LVALUE + r"\s*\.\s*(?:push|pop)\s*\(",
)

REENTRANCY_GUARDS = (
    (r"nonReentrant", re.IGNORECASE),
    (r"ReentrancyGuard", re.IGNORECASE),
    (r"mutex", re.IGNORECASE),
    (r"locked", re.IGNORECASE),
    r"_status\s*==\s*_NOT_ENTERED",
)


class _Site(NamedTuple):
    offset: int
    text: str


class ReentrancyDetector(Detector):
    """Detects external calls made before state updates (SWC-107)."""

    name = "Reentrancy Detector"
    description = "Detects classic reentrancy through Checks-Effects-Interactions violations (SWC-107)"
    vuln_type = VulnerabilityType.REENTRANCY
    swc_id = "SWC-107"

    def __init__(self):
        self.external_call_patterns = compile_patterns(EXTERNAL_CALL_PATTERNS)
        self.state_change_patterns = compile_patterns(STATE_CHANGE_PATTERNS)
        self.guard_patterns = compile_patterns(REENTRANCY_GUARDS)

    def analyze(self, parsed: ParsedContract) -> List[Web3Finding]:
        findings: List[Web3Finding] = []

        for contract in parsed.contracts:
            for func in contract.functions:
                if not self._is_entry_point(func) or not self._is_state_mutating(func):
                    continue

                body = self._function_body(func)
                if self.has_reentrancy_guard(func.modifiers, body):
                    continue

                finding = self._check_function(contract, func, body)
                if finding:
                    findings.append(finding)

        logger.debug("%s: %d finding(s)", self.name, len(findings))
        return findings

    def has_reentrancy_guard(self, modifiers: List[str], body: str) -> bool:
        """Whether a guard modifier or an inline lock idiom is present."""
        if any(any_match(self.guard_patterns, mod) for mod in modifiers):
            return True
        return any_match(self.guard_patterns, body)

    def external_calls(self, body: str) -> List[_Site]:
        """External call sites ordered by offset."""
        sites = {
            m.start(): _Site(m.start(), m.group(0))
            for pattern in self.external_call_patterns
            for m in pattern.finditer(body)
        }
        return sorted(sites.values())

    def state_changes(self, body: str) -> List[_Site]:
        """State write sites ordered by offset, local declarations excluded."""
        sites = {}
        for pattern in self.state_change_patterns:
            for m in pattern.finditer(body):
                if declares_locally(body, m.start(), m.group("target")):
                    continue
                sites.setdefault(m.start(), _Site(m.start(), m.group(0).strip()))
        return sorted(sites.values())

    def find_violation(self, body: str) -> Optional[tuple]:
        """First (call, state change) pair where the call precedes the write."""
        changes = self.state_changes(body)
        if not changes:
            return None

        for call in self.external_calls(body):
            later = next((c for c in changes if c.offset > call.offset), None)
            if later:
                return call, later
        return None

    def _check_function(self, contract: Contract, func: Function, body: str) -> Optional[Web3Finding]:
        violation = self.find_violation(body)
        if not violation:
            return None

        call, change = violation
        return self._build_finding(
            severity=SeverityLevel.CRITICAL,
            title="Reentrancy Vulnerability",
            description=(
                f"Function '{func.name}' in contract '{contract.name}' makes an external call "
                "before updating state. This violates the Checks-Effects-Interactions pattern "
                "and may allow reentrancy attacks."
            ),
            remediation=(
                "Apply the Checks-Effects-Interactions pattern: move all state changes before "
                "external calls. Consider using OpenZeppelin's ReentrancyGuard modifier."
            ),
            references=[
                "https://swcregistry.io/docs/SWC-107",
                "https://consensys.github.io/smart-contract-best-practices/attacks/reentrancy/",
            ],
            evidence={
                "external_call": call.text,
                "state_change": change.text,
                "pattern": "CEI violation",
            },
            contract_name=contract.name,
            function_name=func.name,
            line_number=func.line_start,
            exploit_scenario=(
                f"An attacker deploys a contract that calls {func.name}() and, from its "
                f"fallback/receive function, re-enters {func.name}() before state is updated. "
                "This can drain funds or corrupt state."
            ),
            exploit_complexity=ExploitComplexity.LOW,
        )
