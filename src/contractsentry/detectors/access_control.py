"""Access control detector (SWC-105, SWC-115).

Two independent checks: tx.origin used as an authorization primitive, and
public/external functions performing sensitive operations with no caller
restriction.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from contractsentry.config.settings import SeverityLevel
from contractsentry.detectors.base import Detector, compile_patterns
from contractsentry.detectors.vocabulary import has_access_control
from contractsentry.models.contract import Contract, Function, ParsedContract
from contractsentry.models.finding import ExploitComplexity, VulnerabilityType, Web3Finding
from contractsentry.utils.source import (
    contract_spans,
    function_containing,
    line_number_at,
    owning_contract,
)

logger = logging.getLogger(__name__)

# (label, pattern, flags); the first matching entry names the operation
SENSITIVE_OPERATIONS = (
    ("selfdestruct", r"selfdestruct\s*\(", 0),
    ("suicide", r"suicide\s*\(", 0),
    ("ether transfer", r"\.transfer\s*\(", 0),
    ("ether send", r"\.send\s*\(", 0),
    ("call with value", r"\.call\s*\{[^}]*value", 0),
    ("withdraw", r"withdraw", re.IGNORECASE),
    ("setOwner", r"setOwner", re.IGNORECASE),
    ("changeOwner", r"changeOwner", re.IGNORECASE),
    ("transferOwnership", r"transferOwnership", re.IGNORECASE),
    ("setAdmin", r"setAdmin", re.IGNORECASE),
    ("setMinter", r"setMinter", re.IGNORECASE),
    ("setPauser", r"setPauser", re.IGNORECASE),
    ("mint", r"mint\s*\(", re.IGNORECASE),
    ("burn", r"burn\s*\(", re.IGNORECASE),
    ("unpause", r"unpause\s*\(", re.IGNORECASE),
    ("pause", r"pause\s*\(", re.IGNORECASE),
    ("upgrade", r"upgrade", re.IGNORECASE),
    ("setImplementation", r"setImplementation", re.IGNORECASE),
)

_TX_ORIGIN = r"\btx\s*\.\s*origin\b"
_COMPARISON_AFTER = r"\s*[=!]="
_COMPARISON_BEFORE = r"[=!]=\s*$"
_GUARD_OPENING = r"\b(?:require|assert|if)\s*\("
_STATEMENT_BOUNDARY = r"[;{}]"


class AccessControlDetector(Detector):
    """Detects missing or weak access control (SWC-105, SWC-115)."""

    name = "Access Control Detector"
    description = "Detects missing or weak access control patterns (SWC-105, SWC-115)"
    vuln_type = VulnerabilityType.ACCESS_CONTROL
    swc_id = "SWC-105"

    def __init__(self):
        self.sensitive_operations: Tuple[Tuple[str, re.Pattern], ...] = tuple(
            (label, pattern)
            for (label, _, _), pattern in zip(
                SENSITIVE_OPERATIONS,
                compile_patterns((p, flags) for _, p, flags in SENSITIVE_OPERATIONS),
            )
        )
        (
            self.tx_origin,
            self.comparison_after,
            self.comparison_before,
            self.guard_opening,
            self.statement_boundary,
        ) = compile_patterns(
            (_TX_ORIGIN, _COMPARISON_AFTER, _COMPARISON_BEFORE, _GUARD_OPENING, _STATEMENT_BOUNDARY)
        )

    def analyze(self, parsed: ParsedContract) -> List[Web3Finding]:
        findings: List[Web3Finding] = []
        if not parsed.contracts:
            return findings

        spans = contract_spans(parsed.source, parsed.contracts)
        default_owner = parsed.contracts[0].name

        for contract in parsed.contracts:
            findings.extend(self._detect_tx_origin(parsed, contract, spans, default_owner))

            for func in contract.functions:
                if not self._is_entry_point(func) or not self._is_state_mutating(func):
                    continue
                if self._is_constructor(func):
                    continue

                finding = self._check_unprotected(contract, func)
                if finding:
                    findings.append(finding)

        logger.debug("%s: %d finding(s)", self.name, len(findings))
        return findings

    def sensitive_operation(self, func: Function) -> Optional[Tuple[str, str]]:
        """(operation label, where matched) for the first sensitive operation found."""
        call_form = f"{func.name}("
        body = self._function_body(func)
        for label, pattern in self.sensitive_operations:
            if pattern.search(call_form):
                return label, "name"
            if pattern.search(body):
                return label, "body"
        return None

    def is_authorization_use(self, source: str, start: int, end: int) -> bool:
        """Whether the tx.origin occurrence at [start, end) is compared or guarded."""
        if self.comparison_after.match(source, end):
            return True

        statement_start = 0
        for boundary in self.statement_boundary.finditer(source, 0, start):
            statement_start = boundary.end()
        before = source[statement_start:start]

        if self.comparison_before.search(before):
            return True
        return bool(self.guard_opening.search(before))

    def _detect_tx_origin(
        self,
        parsed: ParsedContract,
        contract: Contract,
        spans: Dict[str, Tuple[int, int]],
        default_owner: str,
    ) -> List[Web3Finding]:
        findings = []
        source = parsed.source

        for match in self.tx_origin.finditer(source):
            if owning_contract(spans, match.start(), default_owner) != contract.name:
                continue
            if not self.is_authorization_use(source, match.start(), match.end()):
                continue

            func = function_containing(contract, source, match.start())
            line_end = source.find("\n", match.end())
            snippet = source[match.start():line_end if line_end >= 0 else len(source)].strip()

            findings.append(self._build_finding(
                severity=SeverityLevel.HIGH,
                title="tx.origin Used for Authorization",
                description=(
                    f"Contract '{contract.name}' uses tx.origin for authorization. This is "
                    "vulnerable to phishing attacks where a malicious contract can trick the "
                    "original transaction sender."
                ),
                remediation=(
                    "Replace tx.origin with msg.sender for authorization checks. tx.origin "
                    "should never be used for authentication."
                ),
                references=[
                    "https://swcregistry.io/docs/SWC-115",
                    "https://consensys.github.io/smart-contract-best-practices/development-recommendations/solidity-specific/tx-origin/",
                ],
                evidence={
                    "match": snippet[:120],
                    "pattern": "tx.origin authorization",
                },
                contract_name=contract.name,
                function_name=func.name if func else None,
                line_number=line_number_at(source, match.start()),
                vulnerability_type=VulnerabilityType.TX_ORIGIN_AUTH,
                swc_id="SWC-115",
                exploit_scenario=(
                    "An attacker lures the victim into calling a malicious contract which then "
                    "calls this contract. tx.origin is still the victim's address, so the "
                    "authorization check passes."
                ),
                exploit_complexity=ExploitComplexity.MEDIUM,
            ))

        return findings

    def _check_unprotected(self, contract: Contract, func: Function) -> Optional[Web3Finding]:
        operation = self.sensitive_operation(func)
        if not operation:
            return None
        if has_access_control(func.modifiers, self._function_body(func)):
            return None

        label, matched_in = operation
        return self._build_finding(
            severity=SeverityLevel.CRITICAL,
            title="Missing Access Control",
            description=(
                f"Function '{func.name}' in contract '{contract.name}' performs a sensitive "
                f"operation ({label}) but lacks access control."
            ),
            remediation=(
                "Add access control modifiers (e.g., onlyOwner, onlyRole) to restrict access. "
                "Consider using OpenZeppelin's AccessControl or Ownable contracts."
            ),
            references=[
                "https://swcregistry.io/docs/SWC-105",
                "https://docs.openzeppelin.com/contracts/4.x/access-control",
            ],
            evidence={
                "sensitive_operation": label,
                "matched_in": matched_in,
                "visibility": func.visibility.value,
                "modifiers": list(func.modifiers),
            },
            contract_name=contract.name,
            function_name=func.name,
            line_number=func.line_start,
            exploit_scenario=(
                f"Any account can call {func.name}() and perform {label}. An attacker could "
                "drain funds, take over ownership or destroy the contract."
            ),
            exploit_complexity=ExploitComplexity.LOW,
        )
