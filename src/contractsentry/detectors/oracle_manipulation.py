"""Oracle manipulation detector.

Covers Chainlink round data consumed without freshness or sanity checks,
single-source oracle dependencies, and spot pricing from AMM reserves.
"""

import logging
import re
from typing import List, Optional

from contractsentry.config.settings import SeverityLevel
from contractsentry.detectors.base import Detector, any_match, compile_patterns
from contractsentry.models.contract import Contract, Function, ParsedContract
from contractsentry.models.finding import ExploitComplexity, VulnerabilityType, Web3Finding
from contractsentry.utils.source import contract_spans

logger = logging.getLogger(__name__)

CHAINLINK_INTERFACE = r"AggregatorV3Interface"
CHAINLINK_CALL = r"latestRoundData\s*\(\s*\)"

ORACLE_VOCABULARY = (
    r"oracle",
    r"priceFeed",
    r"getPrice",
    r"getRate",
    r"getLatestPrice",
    r"fetchPrice",
)

FRESHNESS_CHECKS = (
    r"updatedAt\s*[<>]",
    r"[<>]=?\s*updatedAt",
    r"block\.timestamp\s*-\s*updatedAt",
    r"require\s*\([^)]*updatedAt",
    r"require\s*\([^)]*answeredInRound",
    r"stale",
    r"freshness",
    r"heartbeat",
    r"maxDelay",
)

PRICE_VALIDATION_CHECKS = (
    r"require\s*\([^)]*answer\s*>",
    r"require\s*\([^)]*price\s*>",
    r"answer\s*>\s*0",
    r"price\s*>\s*0",
    r"if\s*\([^)]*answer\s*[<=>]",
)

SINGLE_SOURCE_CALLS = (
    r"\.getPrice\s*\(\s*\)",
    r"\.latestAnswer\s*\(\s*\)",
    r"oracle\.price",
)

MULTI_SOURCE_VOCABULARY = (
    r"median",
    r"aggregate",
    r"weighted",
    r"fallback",
    r"backup",
    r"secondary",
    r"multiple.*oracle",
)

EXTERNAL_ORACLE_VOCABULARY = (r"oracle", r"priceFeed", r"chainlink")
AMM_PRICING = (r"getReserves", r"reserve0", r"reserve1")
TWAP_VOCABULARY = (r"TWAP", r"observe", r"consult")


class OracleManipulationDetector(Detector):
    """Detects vulnerable oracle patterns and price feed issues."""

    name = "Oracle Manipulation Detector"
    description = "Detects vulnerable oracle patterns and price feed issues"
    vuln_type = VulnerabilityType.ORACLE_MANIPULATION

    def __init__(self):
        self.chainlink_interface, self.chainlink_call = compile_patterns(
            (CHAINLINK_INTERFACE, CHAINLINK_CALL), re.IGNORECASE
        )
        self.oracle_vocabulary = compile_patterns(ORACLE_VOCABULARY, re.IGNORECASE)
        self.freshness_checks = compile_patterns(FRESHNESS_CHECKS, re.IGNORECASE)
        self.price_validation_checks = compile_patterns(PRICE_VALIDATION_CHECKS, re.IGNORECASE)
        self.single_source_calls = compile_patterns(SINGLE_SOURCE_CALLS, re.IGNORECASE)
        self.multi_source_vocabulary = compile_patterns(MULTI_SOURCE_VOCABULARY, re.IGNORECASE)
        self.external_oracle_vocabulary = compile_patterns(EXTERNAL_ORACLE_VOCABULARY, re.IGNORECASE)
        self.amm_pricing = compile_patterns(AMM_PRICING, re.IGNORECASE)
        self.twap_vocabulary = compile_patterns(TWAP_VOCABULARY, re.IGNORECASE)

    def analyze(self, parsed: ParsedContract) -> List[Web3Finding]:
        findings: List[Web3Finding] = []
        source = parsed.source

        uses_oracle = any_match(self.oracle_vocabulary, source)
        uses_chainlink = bool(
            self.chainlink_interface.search(source) or self.chainlink_call.search(source)
        )
        if not parsed.contracts or not (uses_oracle or uses_chainlink):
            return findings

        for contract in parsed.contracts:
            for func in contract.functions:
                body = self._function_body(func)
                if not body:
                    continue

                if uses_chainlink and self.chainlink_call.search(body):
                    findings.extend(self._check_chainlink(contract, func, body))

                finding = self._check_single_source(contract, func, body)
                if finding:
                    findings.append(finding)

        finding = self._check_onchain_pricing(parsed, uses_chainlink)
        if finding:
            findings.append(finding)

        logger.debug("%s: %d finding(s)", self.name, len(findings))
        return findings

    def _check_chainlink(self, contract: Contract, func: Function, body: str) -> List[Web3Finding]:
        findings = []
        has_freshness_check = any_match(self.freshness_checks, body)
        has_price_validation = any_match(self.price_validation_checks, body)

        if not has_freshness_check:
            findings.append(self._build_finding(
                severity=SeverityLevel.HIGH,
                title="Missing Oracle Freshness Check",
                description=(
                    f"Function '{func.name}' in contract '{contract.name}' uses a Chainlink "
                    "oracle but does not verify data freshness. Stale prices can lead to "
                    "incorrect calculations."
                ),
                remediation=(
                    "Validate freshness after latestRoundData():\n"
                    "(uint80 roundId, int256 answer, , uint256 updatedAt, uint80 answeredInRound) "
                    "= priceFeed.latestRoundData();\n"
                    'require(updatedAt > block.timestamp - MAX_DELAY, "Stale price");\n'
                    'require(answeredInRound >= roundId, "Stale price round");'
                ),
                references=[
                    "https://docs.chain.link/data-feeds/using-data-feeds#check-the-timestamp-of-the-latest-answer",
                    "https://blog.chain.link/using-chainlink-data-feeds/#checking-for-stale-data",
                ],
                evidence={
                    "oracle_type": "Chainlink",
                    "has_freshness_check": has_freshness_check,
                    "has_price_validation": has_price_validation,
                },
                contract_name=contract.name,
                function_name=func.name,
                line_number=func.line_start,
                exploit_scenario=(
                    "If the Chainlink feed stops updating (network congestion, oracle "
                    "downtime) the contract keeps using a stale price. An attacker trades "
                    "against the discrepancy at the protocol's expense."
                ),
                exploit_complexity=ExploitComplexity.MEDIUM,
            ))

        if not has_price_validation:
            findings.append(self._build_finding(
                severity=SeverityLevel.MEDIUM,
                title="Missing Oracle Price Validation",
                description=(
                    f"Function '{func.name}' in contract '{contract.name}' uses a Chainlink "
                    "oracle but does not validate that the price is positive and reasonable."
                ),
                remediation=(
                    'Add price validation:\nrequire(answer > 0, "Invalid price");\n'
                    'require(answer < MAX_REASONABLE_PRICE, "Price too high");'
                ),
                references=["https://docs.chain.link/data-feeds/using-data-feeds"],
                evidence={
                    "oracle_type": "Chainlink",
                    "has_price_validation": has_price_validation,
                },
                contract_name=contract.name,
                function_name=func.name,
                line_number=func.line_start,
                exploit_scenario=(
                    "A zero or negative price from a malfunctioning feed can cause division "
                    "by zero, wrong collateral valuations or unbounded minting."
                ),
                exploit_complexity=ExploitComplexity.LOW,
            ))

        return findings

    def _check_single_source(self, contract: Contract, func: Function, body: str) -> Optional[Web3Finding]:
        match = next((m for m in (p.search(body) for p in self.single_source_calls) if m), None)
        if not match or any_match(self.multi_source_vocabulary, body):
            return None

        return self._build_finding(
            severity=SeverityLevel.MEDIUM,
            title="Single Oracle Source Dependency",
            description=(
                f"Function '{func.name}' in contract '{contract.name}' relies on a single "
                "oracle source without a fallback mechanism."
            ),
            remediation=(
                "1. Aggregate several oracle sources (median, weighted average)\n"
                "2. Add a fallback oracle for when the primary fails\n"
                "3. Prefer decentralized feeds such as Chainlink Data Feeds\n"
                "4. Add circuit breakers for extreme price deviations"
            ),
            references=["https://blog.chain.link/using-multiple-data-feeds/"],
            evidence={
                "single_source": True,
                "call": match.group(0),
                "has_multi_source": False,
            },
            contract_name=contract.name,
            function_name=func.name,
            line_number=func.line_start,
            exploit_scenario=(
                "If the single oracle source is compromised, manipulated or unavailable, the "
                "whole protocol prices assets wrongly and attackers profit from it."
            ),
            exploit_complexity=ExploitComplexity.HIGH,
        )

    def _check_onchain_pricing(self, parsed: ParsedContract, uses_chainlink: bool) -> Optional[Web3Finding]:
        source = parsed.source
        if uses_chainlink or any_match(self.external_oracle_vocabulary, source):
            return None
        if not any_match(self.amm_pricing, source) or any_match(self.twap_vocabulary, source):
            return None

        contract = self._pricing_contract(parsed)
        return self._build_finding(
            severity=SeverityLevel.HIGH,
            title="On-Chain Price Without Oracle Protection",
            description=(
                f"Contract '{contract.name}' appears to use on-chain reserve/AMM data for "
                "pricing without TWAP or external oracle protection."
            ),
            remediation=(
                "1. Use Chainlink or another decentralized oracle for price data\n"
                "2. Compute time-weighted average prices (TWAP)\n"
                "3. Add slippage protection and price deviation checks"
            ),
            references=[
                "https://docs.uniswap.org/contracts/v2/concepts/core-concepts/oracles",
                "https://docs.chain.link/data-feeds",
            ],
            evidence={
                "has_amm_pricing": True,
                "has_twap": False,
                "uses_external_oracle": False,
            },
            contract_name=contract.name,
            exploit_scenario=(
                "Spot prices from AMM reserves can be skewed within one transaction using a "
                "flash loan, letting an attacker exploit the protocol at a false price."
            ),
            exploit_complexity=ExploitComplexity.MEDIUM,
        )

    def _pricing_contract(self, parsed: ParsedContract) -> Contract:
        """First contract whose declaration span mentions reserve pricing."""
        spans = contract_spans(parsed.source, parsed.contracts)
        for contract in parsed.contracts:
            span = spans.get(contract.name)
            if span and any_match(self.amm_pricing, parsed.source[span[0]:span[1]]):
                return contract
        return parsed.contracts[0]
