"""Shared fixtures for ContractSentry tests."""

from typing import List, Optional

import pytest

from contractsentry.models.contract import (
    Contract,
    Function,
    Parameter,
    ParsedContract,
    StateMutability,
    StateVariable,
    Visibility,
)
from contractsentry.utils.source import extract_solidity_version, line_number_at


def make_function(
    source: str,
    name: str,
    body: str,
    visibility: Visibility = Visibility.PUBLIC,
    state_mutability: StateMutability = StateMutability.NONPAYABLE,
    modifiers: Optional[List[str]] = None,
    parameters: Optional[List[str]] = None,
) -> Function:
    """Build a Function whose declaration line is looked up in ``source``."""
    decl = source.find(f"function {name}")
    return Function(
        name=name,
        visibility=visibility,
        state_mutability=state_mutability,
        modifiers=modifiers or [],
        parameters=[Parameter(name=p, type="uint256") for p in (parameters or [])],
        body=body,
        line_start=line_number_at(source, decl) if decl >= 0 else 1,
    )


def make_parsed(
    source: str,
    contracts: List[Contract],
    pragma: Optional[str] = None,
) -> ParsedContract:
    return ParsedContract(
        source=source,
        pragma=pragma if pragma is not None else extract_solidity_version(source),
        contracts=contracts,
    )


VAULT_TEMPLATE = """pragma solidity ^0.8.0;

contract Vault {
    mapping(address => uint256) public balances;

    function withdraw() public {
        uint256 amount = balances[msg.sender];
%s
    }
}
"""

CEI_RESPECTED = """        balances[msg.sender] = 0;
        (bool ok, ) = msg.sender.call{value: amount}("");
        require(ok, "transfer failed");"""

CEI_VIOLATED = """        (bool ok, ) = msg.sender.call{value: amount}("");
        require(ok, "transfer failed");
        balances[msg.sender] = 0;"""


def vault(statements: str) -> ParsedContract:
    """The withdraw scenario with the given statement ordering."""
    source = VAULT_TEMPLATE % statements
    body_start = source.index("uint256 amount")
    body = source[body_start:source.index("\n    }", body_start)]
    contract = Contract(
        name="Vault",
        state_variables=[StateVariable(name="balances", type="mapping(address => uint256)")],
        functions=[make_function(source, "withdraw", body)],
    )
    return make_parsed(source, [contract])


@pytest.fixture
def safe_vault() -> ParsedContract:
    return vault(CEI_RESPECTED)


@pytest.fixture
def vulnerable_vault() -> ParsedContract:
    return vault(CEI_VIOLATED)


@pytest.fixture
def empty_unit() -> ParsedContract:
    return ParsedContract(source="", contracts=[])
