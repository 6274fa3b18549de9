"""Tests for the integer overflow detector."""

import pytest

from contractsentry.config.settings import SeverityLevel
from contractsentry.detectors.integer_overflow import IntegerOverflowDetector
from contractsentry.models.contract import Contract
from contractsentry.models.finding import ExploitComplexity, VulnerabilityType

from conftest import make_function, make_parsed


def pool(pragma, body, extra="", inherits=None):
    source = (
        f"pragma solidity {pragma};\n"
        "\n"
        "contract Pool {\n"
        f"{extra}"
        "    uint256 public totalDeposits;\n"
        "\n"
        "    function deposit(uint256 amount) public {\n"
        f"        {body}\n"
        "    }\n"
        "}\n"
    )
    func = make_function(source, "deposit", body, parameters=["amount"])
    contract = Contract(name="Pool", inherits=inherits or [], functions=[func])
    return make_parsed(source, [contract])


@pytest.fixture
def detector():
    return IntegerOverflowDetector()


class TestLegacyCompiler:
    """Pragmas below 0.8.0 have no built-in checks."""

    def test_unguarded_addition_is_high(self, detector):
        findings = detector.analyze(pool("^0.7.0", "totalDeposits += amount;"))

        assert len(findings) == 1
        finding = findings[0]
        assert finding.severity == SeverityLevel.HIGH
        assert finding.vulnerability_type == VulnerabilityType.INTEGER_OVERFLOW
        assert finding.swc_id == "SWC-101"
        assert finding.title == "Potential Integer Overflow"
        assert finding.function_name == "deposit"
        assert finding.line_number == 7
        assert finding.evidence["operation_type"] == "addition assignment"

    def test_subtraction_is_underflow(self, detector):
        findings = detector.analyze(pool("^0.6.12", "totalDeposits -= amount;"))

        assert len(findings) == 1
        assert findings[0].vulnerability_type == VulnerabilityType.INTEGER_UNDERFLOW
        assert findings[0].title == "Potential Integer Underflow"

    def test_safe_math_calls_skip_function(self, detector):
        parsed = pool(
            "^0.7.0",
            "totalDeposits = totalDeposits.add(amount);",
            extra="    using SafeMath for uint256;\n",
        )
        assert detector.analyze(parsed) == []

    def test_safe_math_in_scope_downgrades(self, detector):
        parsed = pool(
            "^0.7.0",
            "totalDeposits += amount;",
            extra="    using SafeMath for uint256;\n",
        )
        findings = detector.analyze(parsed)

        assert len(findings) == 1
        assert findings[0].severity == SeverityLevel.MEDIUM
        assert findings[0].evidence["uses_safe_math"] is True
        assert "add()" in findings[0].remediation

    def test_safe_math_base_contract_downgrades(self, detector):
        findings = detector.analyze(pool("^0.7.0", "totalDeposits += amount;", inherits=["SafeMathBase"]))
        assert findings[0].severity == SeverityLevel.MEDIUM

    def test_local_arithmetic_ignored(self, detector):
        body = "uint256 fee = 2;\n        uint256 scaled = fee * 3;"
        assert detector.analyze(pool("^0.7.0", body)) == []

    def test_missing_pragma_is_treated_as_legacy(self, detector):
        parsed = pool("^0.7.0", "totalDeposits += amount;").model_copy(update={"pragma": None})
        assert len(detector.analyze(parsed)) == 1

    def test_line_numbers_follow_the_body(self, detector):
        body = "totalDeposits += amount;\n        totalDeposits -= 1;"
        findings = detector.analyze(pool("^0.7.0", body))

        assert [f.line_number for f in findings] == [7, 8]


class TestCheckedCompiler:
    """From 0.8.0 only unchecked blocks are reported."""

    def test_checked_arithmetic_is_clean(self, detector):
        assert detector.analyze(pool("^0.8.0", "totalDeposits += amount;")) == []

    def test_unchecked_block_is_medium(self, detector):
        findings = detector.analyze(pool("^0.8.4", "unchecked { totalDeposits += amount; }"))

        assert len(findings) == 1
        finding = findings[0]
        assert finding.severity == SeverityLevel.MEDIUM
        assert finding.exploit_complexity == ExploitComplexity.MEDIUM
        assert finding.title == "Unchecked addition assignment in unchecked block"
        assert finding.contract_name == "Pool"
        assert finding.function_name == "deposit"
        assert finding.line_number == 7

    def test_unchecked_increment(self, detector):
        findings = detector.analyze(pool("0.8.19", "unchecked { i++; }"))

        assert len(findings) == 1
        assert findings[0].evidence["operation"] == "increment"

    def test_unchecked_block_without_arithmetic(self, detector):
        assert detector.analyze(pool("^0.8.0", "unchecked { emit Deposited(amount); }")) == []

    def test_range_pragma_uses_floor(self, detector):
        assert len(detector.analyze(pool(">=0.6.0 <0.9.0", "totalDeposits += amount;"))) == 1


def test_empty_unit(detector, empty_unit):
    assert detector.analyze(empty_unit) == []
