"""Flash loan attack vector detector.

Spot-price calculations that an attacker can move inside a single
transaction, plus prices derived directly from token balances.
"""

import logging
import re
from typing import List, Optional

from contractsentry.config.settings import SeverityLevel
from contractsentry.detectors.base import Detector, any_match, compile_patterns
from contractsentry.models.contract import Contract, Function, ParsedContract
from contractsentry.models.finding import ExploitComplexity, VulnerabilityType, Web3Finding

logger = logging.getLogger(__name__)

# Provider interfaces and borrower callbacks
FLASH_LOAN_INTERACTION = (
    r"IFlashLoan",
    r"flashLoan",
    r"FlashBorrower",
    r"executeOperation",   # Aave
    r"uniswapV2Call",
    r"uniswapV3",
    r"pancakeCall",
    r"onFlashLoan",        # ERC-3156
)

PRICE_CALCULATION = (
    r"getReserves\s*\(\s*\)",
    r"balanceOf\s*\([^)]*\)",
    r"totalSupply\s*\(\s*\)",
    r"getAmountOut",
    r"getAmountsOut",
    r"quote\s*\(",
    r"price\s*=(?!=)",
    r"rate\s*=(?!=)",
    r"exchangeRate",
)

# Reported as evidence only; the first match wins
RATIO_PATTERNS = (
    r"reserve[0-9]?\s*[*/]\s*reserve",
    r"balance\s*[*/]\s*balance",
    r"totalSupply.*balance|balance.*totalSupply",
    r"block\.timestamp|block\.number",
)

PROTECTION = (
    r"TWAP",
    r"oracle",
    r"Chainlink",
    r"priceFeed",
    r"latestRoundData",
    r"consult\s*\(",
    r"observe\s*\(",
    r"getAveragePrice",
    r"timeLock",
    r"delay",
    r"cooldown",
)

# Call arguments with at most one level of nested parentheses
_CALL_ARGS = r"\((?:[^()]|\([^()]*\))+\)"

BALANCE_PRICING = (
    rf"balanceOf\s*{_CALL_ARGS}\s*[*/]",
    r"[*/]\s*(?:[\w.]+\.)?balanceOf\s*\(",
    r"token\.balanceOf.*[*/]",
    r"address\(this\).*balance.*[*/]",
)


class FlashLoanDetector(Detector):
    name = "Flash Loan Detector"
    description = "Detects patterns vulnerable to flash loan attacks in DeFi contracts"
    vuln_type = VulnerabilityType.FLASH_LOAN_ATTACK

    def __init__(self):
        self.interaction_patterns = compile_patterns(FLASH_LOAN_INTERACTION, re.IGNORECASE)
        self.price_patterns = compile_patterns(PRICE_CALCULATION, re.IGNORECASE)
        self.ratio_patterns = compile_patterns(RATIO_PATTERNS, re.IGNORECASE)
        self.protection_patterns = compile_patterns(PROTECTION, re.IGNORECASE)
        self.balance_pricing_patterns = compile_patterns(BALANCE_PRICING, re.IGNORECASE)

    def analyze(self, parsed: ParsedContract) -> List[Web3Finding]:
        findings: List[Web3Finding] = []
        has_interaction = any_match(self.interaction_patterns, parsed.source)

        for contract in parsed.contracts:
            for func in contract.functions:
                body = self._function_body(func)
                if not body:
                    continue

                if any_match(self.price_patterns, body) and not any_match(self.protection_patterns, body):
                    findings.append(self._price_finding(contract, func, body, has_interaction))

                if self.has_balance_based_pricing(body):
                    findings.append(self._balance_pricing_finding(contract, func))

        logger.debug("%s: %d finding(s)", self.name, len(findings))
        return findings

    def ratio_pattern(self, body: str) -> Optional[str]:
        for pattern in self.ratio_patterns:
            if pattern.search(body):
                return pattern.pattern
        return None

    def has_balance_based_pricing(self, body: str) -> bool:
        return any_match(self.balance_pricing_patterns, body)

    def _price_finding(
        self,
        contract: Contract,
        func: Function,
        body: str,
        has_interaction: bool,
    ) -> Web3Finding:
        description = (
            f"Function '{func.name}' in contract '{contract.name}' performs price/value "
            "calculations that may be manipulable within a single transaction via flash loans."
        )
        if has_interaction:
            description += " Contract appears to interact with flash loan providers."

        return self._build_finding(
            severity=SeverityLevel.CRITICAL if has_interaction else SeverityLevel.HIGH,
            title="Potential Flash Loan Vulnerability",
            description=description,
            remediation=(
                "1. Use time-weighted average prices (TWAP) instead of spot prices\n"
                "2. Integrate Chainlink or other decentralized oracles for price feeds\n"
                "3. Add transaction delays or timelocks for large operations\n"
                "4. Aggregate multiple price sources\n"
                "5. Implement slippage protection and price bounds"
            ),
            references=[
                "https://blog.chain.link/flash-loans-and-the-importance-of-tamper-proof-oracles/",
            ],
            evidence={
                "has_flash_loan_interaction": has_interaction,
                "price_calculation": True,
                "vulnerable_pattern": self.ratio_pattern(body),
                "has_protection": False,
            },
            contract_name=contract.name,
            function_name=func.name,
            line_number=func.line_start,
            exploit_scenario=(
                "An attacker takes a flash loan, swaps a large amount to move the price or "
                f"reserves, calls {func.name}() at the manipulated price and repays the loan, "
                "all in one transaction."
            ),
            exploit_complexity=ExploitComplexity.MEDIUM,
        )

    def _balance_pricing_finding(self, contract: Contract, func: Function) -> Web3Finding:
        return self._build_finding(
            severity=SeverityLevel.HIGH,
            title="Balance-Based Price Calculation",
            description=(
                f"Function '{func.name}' in contract '{contract.name}' calculates prices or "
                "values from token balances. These are easily manipulated via flash loans or "
                "direct token transfers."
            ),
            remediation=(
                "Do not derive prices from contract balances. Use external oracles, TWAP, or "
                "track internal accounting separately from actual balances."
            ),
            references=["https://samczsun.com/so-you-want-to-use-a-price-oracle/"],
            evidence={"pattern": "balance-based pricing"},
            contract_name=contract.name,
            function_name=func.name,
            line_number=func.line_start,
            exploit_scenario=(
                "An attacker transfers tokens to the contract or borrows them with a flash "
                "loan to inflate balances temporarily, skewing the computed price."
            ),
            exploit_complexity=ExploitComplexity.LOW,
        )
