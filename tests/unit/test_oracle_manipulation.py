"""Tests for the oracle manipulation detector."""

import pytest

from contractsentry.config.settings import SeverityLevel
from contractsentry.detectors.oracle_manipulation import OracleManipulationDetector
from contractsentry.models.contract import Contract, StateMutability

from conftest import make_function, make_parsed


def consumer(body, header='import "./AggregatorV3Interface.sol";\n'):
    source = (
        "pragma solidity ^0.8.0;\n"
        f"{header}"
        "\n"
        "contract PriceConsumer {\n"
        "    AggregatorV3Interface internal priceFeed;\n"
        "\n"
        "    function latestPrice() public view returns (int256) {\n"
        f"        {body}\n"
        "    }\n"
        "}\n"
    )
    func = make_function(source, "latestPrice", body, state_mutability=StateMutability.VIEW)
    return make_parsed(source, [Contract(name="PriceConsumer", functions=[func])])


STALE_READ = "(, int256 answer, , , ) = priceFeed.latestRoundData();\n        return answer;"

CHECKED_READ = (
    "(uint80 roundId, int256 answer, , uint256 updatedAt, uint80 answeredInRound) = "
    "priceFeed.latestRoundData();\n"
    '        require(updatedAt > block.timestamp - 3600, "stale");\n'
    '        require(answer > 0, "invalid");\n'
    "        return answer;"
)


def amm(body, name="getPrice"):
    source = (
        "pragma solidity ^0.8.0;\n"
        "\n"
        "contract Router {\n"
        "    IUniswapV2Pair public pair;\n"
        "}\n"
        "\n"
        "contract Lending {\n"
        f"    function {name}() public view returns (uint256) {{\n"
        f"        {body}\n"
        "    }\n"
        "}\n"
    )
    func = make_function(source, name, body, state_mutability=StateMutability.VIEW)
    contracts = [Contract(name="Router"), Contract(name="Lending", functions=[func])]
    return make_parsed(source, contracts)


SPOT_PRICE = "(uint112 reserve0, uint112 reserve1, ) = pair.getReserves();\n        return reserve1 * 1e18 / reserve0;"


@pytest.fixture
def detector():
    return OracleManipulationDetector()


class TestChainlinkUsage:
    """Test round data consumption checks."""

    def test_unchecked_round_data(self, detector):
        findings = detector.analyze(consumer(STALE_READ))

        assert [f.title for f in findings] == [
            "Missing Oracle Freshness Check",
            "Missing Oracle Price Validation",
        ]
        assert findings[0].severity == SeverityLevel.HIGH
        assert findings[1].severity == SeverityLevel.MEDIUM
        assert all(f.function_name == "latestPrice" for f in findings)
        assert findings[0].line_number == 7

    def test_checked_round_data_is_clean(self, detector):
        assert detector.analyze(consumer(CHECKED_READ)) == []

    def test_freshness_without_validation(self, detector):
        body = (
            "(, int256 answer, , uint256 updatedAt, ) = priceFeed.latestRoundData();\n"
            '        require(block.timestamp - updatedAt < 3600, "old");\n'
            "        return answer;"
        )
        findings = detector.analyze(consumer(body))
        assert [f.title for f in findings] == ["Missing Oracle Price Validation"]

    def test_no_swc_reference(self, detector):
        assert all(f.swc_id is None for f in detector.analyze(consumer(STALE_READ)))


class TestSingleSource:
    """Test single oracle dependencies."""

    def test_single_source_is_medium(self, detector):
        findings = detector.analyze(consumer("return oracle.getPrice();", header=""))

        assert len(findings) == 1
        assert findings[0].title == "Single Oracle Source Dependency"
        assert findings[0].severity == SeverityLevel.MEDIUM
        assert findings[0].evidence["call"] == ".getPrice()"

    def test_fallback_source_is_clean(self, detector):
        body = "try oracle.getPrice() returns (uint256 p) { return p; } catch { return backupOracle.getPrice(); }"
        assert detector.analyze(consumer(body, header="")) == []


class TestOnChainPricing:
    """Test AMM reserve pricing without protection."""

    def test_reserve_pricing_is_high(self, detector):
        findings = detector.analyze(amm(SPOT_PRICE))

        assert len(findings) == 1
        finding = findings[0]
        assert finding.title == "On-Chain Price Without Oracle Protection"
        assert finding.severity == SeverityLevel.HIGH
        assert finding.contract_name == "Lending"
        assert finding.function_name is None

    def test_twap_is_clean(self, detector):
        body = "return pair.consult(token, 1e18);\n        // reserve0 fallback unused"
        assert detector.analyze(amm(body)) == []

    def test_without_oracle_vocabulary_short_circuits(self, detector):
        assert detector.analyze(amm(SPOT_PRICE, name="spotValue")) == []


def test_empty_unit(detector, empty_unit):
    assert detector.analyze(empty_unit) == []
