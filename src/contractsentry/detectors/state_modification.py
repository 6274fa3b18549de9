"""Unprotected state modification detector.

Public entry points that write owner, balance, fee and similar critical
state without restricting callers, or with a caller restriction but no
input validation at all.
"""

import logging
import re
from typing import List, Optional

from contractsentry.config.settings import SeverityLevel
from contractsentry.detectors.base import Detector, any_match, compile_patterns
from contractsentry.detectors.vocabulary import has_access_control
from contractsentry.models.contract import Contract, Function, ParsedContract, StateVariable
from contractsentry.models.finding import ExploitComplexity, VulnerabilityType, Web3Finding
from contractsentry.utils.source import declares_locally

logger = logging.getLogger(__name__)

CRITICAL_STATE_VOCABULARY = (
    "owner",
    "admin",
    "operator",
    "balance",
    "totalSupply",
    "allowance",
    "paused",
    "price",
    "rate",
    "fee",
    "limit",
    "threshold",
    "whitelist",
    "blacklist",
    "implementation",
    "controller",
)

VALIDATION_PATTERNS = (
    r"\brequire\s*\(",
    r"\bassert\s*\(",
    r"\brevert\b",
)

_INDEX = r"(?:\s*\[[^\]]*\])*"
_ASSIGNMENT = r"\s*[+\-*/]?=(?![=>])"


class StateModificationDetector(Detector):
    """Detects unprotected functions that modify critical contract state."""

    name = "State Modification Detector"
    description = "Detects unprotected functions that modify critical contract state"
    vuln_type = VulnerabilityType.UNPROTECTED_STATE_MODIFICATION

    def __init__(self):
        self.critical_patterns = compile_patterns(CRITICAL_STATE_VOCABULARY, re.IGNORECASE)
        self.identifier_writes = compile_patterns(
            (rf"\b(?P<name>\w*{word}\w*){_INDEX}{_ASSIGNMENT}" for word in CRITICAL_STATE_VOCABULARY),
            re.IGNORECASE,
        )
        self.validation_patterns = compile_patterns(VALIDATION_PATTERNS)

    def analyze(self, parsed: ParsedContract) -> List[Web3Finding]:
        findings: List[Web3Finding] = []

        for contract in parsed.contracts:
            critical_vars = self.critical_variables(contract.state_variables)

            for func in contract.functions:
                if not self._is_entry_point(func) or not self._is_state_mutating(func):
                    continue
                if self._is_constructor(func):
                    continue

                finding = self._check_function(contract, func, critical_vars)
                if finding:
                    findings.append(finding)

        logger.debug("%s: %d finding(s)", self.name, len(findings))
        return findings

    def critical_variables(self, state_variables: List[StateVariable]) -> List[str]:
        return [v.name for v in state_variables if any_match(self.critical_patterns, v.name)]

    def modified_variables(self, body: str, critical_vars: List[str]) -> List[str]:
        """Critical variables written in ``body``, declared ones first.

        The second pass adds, per vocabulary word, the first assigned
        identifier that is neither a local declaration nor already listed.
        """
        modified = [name for name in critical_vars if self._writes(body, name)]

        for pattern in self.identifier_writes:
            for match in pattern.finditer(body):
                name = match.group("name")
                if name in modified or declares_locally(body, match.start(), name):
                    continue
                modified.append(name)
                break

        return modified

    def has_input_validation(self, body: str) -> bool:
        return any_match(self.validation_patterns, body)

    @staticmethod
    def _writes(body: str, name: str) -> bool:
        escaped = re.escape(name)
        patterns = (
            rf"\b{escaped}{_INDEX}{_ASSIGNMENT}",
            rf"\b{escaped}{_INDEX}\s*(?:\+\+|--)",
            rf"(?:\+\+|--)\s*{escaped}\b",
            rf"\bdelete\s+{escaped}\b",
        )
        return any(re.search(p, body) for p in patterns)

    def _check_function(
        self,
        contract: Contract,
        func: Function,
        critical_vars: List[str],
    ) -> Optional[Web3Finding]:
        body = self._function_body(func)
        modified = self.modified_variables(body, critical_vars)
        if not modified:
            return None

        variables = ", ".join(modified)
        access_controlled = has_access_control(func.modifiers, body)
        validated = self.has_input_validation(body)

        if not access_controlled:
            return self._build_finding(
                severity=SeverityLevel.CRITICAL,
                title="Unprotected Critical State Modification",
                description=(
                    f"Function '{func.name}' in contract '{contract.name}' modifies critical "
                    f"state variable(s) [{variables}] without access control."
                ),
                remediation=(
                    "Add access control modifiers (e.g., onlyOwner) to restrict who can modify "
                    "these variables. Consider OpenZeppelin's Ownable or AccessControl."
                ),
                references=[
                    "https://consensys.github.io/smart-contract-best-practices/development-recommendations/solidity-specific/visibility/",
                ],
                evidence={
                    "modified_variables": modified,
                    "visibility": func.visibility.value,
                    "has_access_control": False,
                    "has_validation": validated,
                },
                contract_name=contract.name,
                function_name=func.name,
                line_number=func.line_start,
                exploit_scenario=(
                    f"Any external account can call {func.name}() and modify {variables}, "
                    "changing ownership, manipulating balances or corrupting contract state."
                ),
                exploit_complexity=ExploitComplexity.LOW,
            )

        if validated or not func.parameters:
            return None

        return self._build_finding(
            severity=SeverityLevel.MEDIUM,
            title="Missing Input Validation on State Modification",
            description=(
                f"Function '{func.name}' in contract '{contract.name}' modifies state "
                f"variable(s) [{variables}] but lacks input validation."
            ),
            remediation=(
                "Validate parameters with require() before modifying state: check for zero "
                "addresses, valid ranges and other constraints."
            ),
            references=[
                "https://consensys.github.io/smart-contract-best-practices/development-recommendations/general/input-validation/",
            ],
            evidence={
                "modified_variables": modified,
                "parameters": func.parameter_names,
            },
            contract_name=contract.name,
            function_name=func.name,
            line_number=func.line_start,
            exploit_scenario=(
                "An authorized caller could accidentally or maliciously set invalid values "
                "(zero address, extreme values) that corrupt contract state."
            ),
            exploit_complexity=ExploitComplexity.MEDIUM,
        )
