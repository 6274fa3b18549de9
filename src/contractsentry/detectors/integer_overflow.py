"""Integer overflow/underflow detector (SWC-101).

Behaviour depends on the pragma floor. From 0.8.0 the compiler checks
arithmetic, so only ``unchecked`` blocks are inspected; below it every
function is scanned for unguarded arithmetic on parameters or storage.
"""

import logging
import re
from typing import List, NamedTuple, Optional, Tuple

from contractsentry.config.settings import SeverityLevel
from contractsentry.detectors.base import Detector, compile_patterns
from contractsentry.models.contract import Contract, Function, ParsedContract
from contractsentry.models.finding import ExploitComplexity, VulnerabilityType, Web3Finding
from contractsentry.utils.source import (
    body_line_number,
    contract_spans,
    declared_before,
    function_containing,
    is_vulnerable_to_overflow,
    line_number_at,
    owning_contract,
)

logger = logging.getLogger(__name__)

_OPERAND = r"(?:\b[A-Za-z_]\w*(?:\s*\[[^\]]*\])*|\b\d+)"
_IDENTIFIER = re.compile(r"[A-Za-z_]\w*")


class ArithmeticPattern(NamedTuple):
    operation: str
    risk: str
    pattern: str


ARITHMETIC_PATTERNS = (
    ArithmeticPattern("addition", "overflow",
                      rf"(?P<lhs>{_OPERAND})\s*\+(?![+=])\s*(?P<rhs>{_OPERAND})"),
    ArithmeticPattern("subtraction", "underflow",
                      rf"(?P<lhs>{_OPERAND})\s*-(?![-=>])\s*(?P<rhs>{_OPERAND})"),
    ArithmeticPattern("multiplication", "overflow",
                      rf"(?P<lhs>{_OPERAND})\s*\*(?![*=])\s*(?P<rhs>{_OPERAND})"),
    ArithmeticPattern("addition assignment", "overflow",
                      rf"(?P<lhs>{_OPERAND})\s*\+=\s*(?P<rhs>{_OPERAND})?"),
    ArithmeticPattern("subtraction assignment", "underflow",
                      rf"(?P<lhs>{_OPERAND})\s*-=\s*(?P<rhs>{_OPERAND})?"),
    ArithmeticPattern("multiplication assignment", "overflow",
                      rf"(?P<lhs>{_OPERAND})\s*\*=\s*(?P<rhs>{_OPERAND})?"),
    ArithmeticPattern("increment", "overflow",
                      rf"(?P<lhs>{_OPERAND})\s*\+\+|\+\+\s*(?P<rhs>{_OPERAND})"),
    ArithmeticPattern("decrement", "underflow",
                      rf"(?P<lhs>{_OPERAND})\s*--|--\s*(?P<rhs>{_OPERAND})"),
)

SAFE_MATH_CALLS = (r"\.(?:add|sub|mul|div|mod)\s*\(",)
SAFE_MATH_USING = r"using\s+SafeMath\s+for"
UNCHECKED_BLOCK = r"unchecked\s*\{[^}]*\}"


def _base_name(operand: Optional[str]) -> Optional[str]:
    if not operand:
        return None
    match = _IDENTIFIER.match(operand)
    return match.group(0) if match else None


class IntegerOverflowDetector(Detector):
    """Detects integer overflow/underflow (SWC-101)."""

    name = "Integer Overflow Detector"
    description = "Detects integer overflow/underflow vulnerabilities (SWC-101)"
    vuln_type = VulnerabilityType.INTEGER_OVERFLOW
    swc_id = "SWC-101"

    def __init__(self):
        compiled = compile_patterns(p.pattern for p in ARITHMETIC_PATTERNS)
        self.arithmetic_patterns: Tuple[Tuple[ArithmeticPattern, re.Pattern], ...] = tuple(
            zip(ARITHMETIC_PATTERNS, compiled)
        )
        self.safe_math_calls = compile_patterns(SAFE_MATH_CALLS)
        self.safe_math_using, self.unchecked_block = compile_patterns(
            (SAFE_MATH_USING, UNCHECKED_BLOCK)
        )

    def analyze(self, parsed: ParsedContract) -> List[Web3Finding]:
        if not parsed.contracts:
            return []

        if not is_vulnerable_to_overflow(parsed.pragma):
            findings = self._analyze_unchecked_blocks(parsed)
        else:
            findings = self._analyze_legacy(parsed)

        logger.debug("%s: %d finding(s)", self.name, len(findings))
        return findings

    def uses_safe_math(self, parsed: ParsedContract, contract: Contract) -> bool:
        """Whether SafeMath is in use through a using-for directive or a base contract."""
        if self.safe_math_using.search(parsed.source):
            return True
        return any("safemath" in base.lower() for base in contract.inherits)

    def is_risky(self, body: str, match: re.Match, parameters: List[str]) -> bool:
        """Whether an arithmetic match touches user input or presumed storage.

        Anything not visibly declared as a local before the operation is
        presumed to be storage.
        """
        operands = [_base_name(match.group("lhs")), _base_name(match.group("rhs"))]
        names = [name for name in operands if name]

        if any(name in parameters for name in names):
            return True

        leading = names[0] if names else None
        if leading is None:
            return False
        return not declared_before(body, match.start(), leading)

    def first_arithmetic(self, text: str) -> Optional[Tuple[ArithmeticPattern, re.Match]]:
        """First arithmetic pattern (in table order) that matches ``text``."""
        for arith, pattern in self.arithmetic_patterns:
            match = pattern.search(text)
            if match:
                return arith, match
        return None

    def _analyze_unchecked_blocks(self, parsed: ParsedContract) -> List[Web3Finding]:
        findings = []
        source = parsed.source
        spans = contract_spans(source, parsed.contracts)
        default_owner = parsed.contracts[0].name

        for block in self.unchecked_block.finditer(source):
            hit = self.first_arithmetic(block.group(0))
            if not hit:
                continue

            arith, _ = hit
            contract_name = owning_contract(spans, block.start(), default_owner)
            contract = parsed.get_contract(contract_name)
            func = function_containing(contract, source, block.start()) if contract else None
            snippet = block.group(0)

            findings.append(self._build_finding(
                severity=SeverityLevel.MEDIUM,
                title=f"Unchecked {arith.operation} in unchecked block",
                description=(
                    f"An unchecked block contains {arith.operation}, which bypasses the "
                    "overflow protection of Solidity 0.8+. This may be an intentional gas "
                    "optimization, but verify it cannot be exploited."
                ),
                remediation=(
                    "Verify that the unchecked arithmetic cannot overflow or underflow, or add "
                    "explicit bounds checks before the unchecked block."
                ),
                references=[
                    "https://swcregistry.io/docs/SWC-101",
                    "https://docs.soliditylang.org/en/v0.8.0/control-structures.html#checked-or-unchecked-arithmetic",
                ],
                evidence={
                    "unchecked_block": snippet if len(snippet) <= 100 else snippet[:100] + "...",
                    "operation": arith.operation,
                    "solidity_version": parsed.pragma,
                },
                contract_name=contract_name,
                function_name=func.name if func else None,
                line_number=line_number_at(source, block.start()),
                vulnerability_type=self._risk_type(arith.risk),
                exploit_scenario=(
                    f"The unchecked block may allow {arith.risk} if the values are not "
                    "validated before entry."
                ),
                exploit_complexity=ExploitComplexity.MEDIUM,
            ))

        return findings

    def _analyze_legacy(self, parsed: ParsedContract) -> List[Web3Finding]:
        findings = []

        for contract in parsed.contracts:
            safe_math = self.uses_safe_math(parsed, contract)

            for func in contract.functions:
                body = self._function_body(func)
                if not body or any(p.search(body) for p in self.safe_math_calls):
                    continue
                findings.extend(self._scan_function(parsed, contract, func, body, safe_math))

        return findings

    def _scan_function(
        self,
        parsed: ParsedContract,
        contract: Contract,
        func: Function,
        body: str,
        safe_math: bool,
    ) -> List[Web3Finding]:
        findings = []
        seen = set()
        parameters = func.parameter_names

        for arith, pattern in self.arithmetic_patterns:
            for match in pattern.finditer(body):
                if match.start() in seen:
                    continue
                if not self.is_risky(body, match, parameters):
                    continue
                seen.add(match.start())
                findings.append(self._legacy_finding(parsed, contract, func, arith, match, safe_math))

        findings.sort(key=lambda f: f.line_number or 0)
        return findings

    def _legacy_finding(
        self,
        parsed: ParsedContract,
        contract: Contract,
        func: Function,
        arith: ArithmeticPattern,
        match: re.Match,
        safe_math: bool,
    ) -> Web3Finding:
        risk_title = "Overflow" if arith.risk == "overflow" else "Underflow"
        version = parsed.pragma or "< 0.8.0"

        if safe_math:
            method = {"overflow": "add()", "underflow": "sub()"}[arith.risk]
            if "multiplication" in arith.operation:
                method = "mul()"
            remediation = f"Use SafeMath's {method} for this operation as elsewhere in the contract."
        else:
            remediation = (
                "Upgrade to Solidity 0.8.0+ for built-in overflow protection, or use "
                "OpenZeppelin's SafeMath library."
            )

        if arith.risk == "overflow":
            scenario = (
                f"An attacker supplies large values so the {arith.operation} wraps around to a "
                "small number, bypassing checks or manipulating balances."
            )
        else:
            scenario = (
                f"An attacker triggers a {arith.operation} that wraps around to a huge number "
                "(max uint256), draining funds or bypassing limits."
            )

        return self._build_finding(
            severity=SeverityLevel.MEDIUM if safe_math else SeverityLevel.HIGH,
            title=f"Potential Integer {risk_title}",
            description=(
                f"Function '{func.name}' in contract '{contract.name}' performs "
                f"{arith.operation} without overflow protection. Solidity version {version} "
                "has no built-in overflow checks."
            ),
            remediation=remediation,
            references=[
                "https://swcregistry.io/docs/SWC-101",
                "https://docs.openzeppelin.com/contracts/4.x/api/utils#SafeMath",
            ],
            evidence={
                "operation": match.group(0).strip(),
                "operation_type": arith.operation,
                "solidity_version": parsed.pragma,
                "uses_safe_math": safe_math,
            },
            contract_name=contract.name,
            function_name=func.name,
            line_number=body_line_number(parsed.source, func, match.start()),
            vulnerability_type=self._risk_type(arith.risk),
            exploit_scenario=scenario,
            exploit_complexity=ExploitComplexity.MEDIUM,
        )

    @staticmethod
    def _risk_type(risk: str) -> VulnerabilityType:
        if risk == "overflow":
            return VulnerabilityType.INTEGER_OVERFLOW
        return VulnerabilityType.INTEGER_UNDERFLOW
