"""Parsed smart contract data models.

These types are produced by the external Solidity parser and are read-only to
the detection pipeline. Field names are snake_case; camelCase aliases are
accepted so parser JSON can be loaded directly.
"""

from typing import List, Optional
from hashlib import sha256
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Visibility(str, Enum):
    """Function visibility."""

    PUBLIC = "public"
    EXTERNAL = "external"
    INTERNAL = "internal"
    PRIVATE = "private"


class StateMutability(str, Enum):
    """Function state mutability."""

    VIEW = "view"
    PURE = "pure"
    PAYABLE = "payable"
    NONPAYABLE = "nonpayable"


class ContractKind(str, Enum):
    """Kind of contract-like declaration."""

    CONTRACT = "contract"
    INTERFACE = "interface"
    LIBRARY = "library"
    ABSTRACT = "abstract"


class _ParsedModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Parameter(_ParsedModel):
    """Function parameter."""

    name: str = ""
    type: str = ""


class StateVariable(_ParsedModel):
    """Contract-level storage variable."""

    name: str
    type: str = ""


class Function(_ParsedModel):
    """A function declaration with its raw body text."""

    name: str = Field(default="", description="Empty string denotes constructor/fallback")
    visibility: Visibility = Visibility.PUBLIC
    state_mutability: StateMutability = StateMutability.NONPAYABLE
    modifiers: List[str] = Field(default_factory=list)
    parameters: List[Parameter] = Field(default_factory=list)
    body: Optional[str] = None
    line_start: int = Field(default=1, ge=1)

    @property
    def is_constructor(self) -> bool:
        return self.name in ("", "constructor")

    @property
    def parameter_names(self) -> List[str]:
        return [p.name for p in self.parameters if p.name]


class Contract(_ParsedModel):
    """Smart contract information."""

    name: str
    kind: ContractKind = ContractKind.CONTRACT
    inherits: List[str] = Field(default_factory=list)
    state_variables: List[StateVariable] = Field(default_factory=list)
    functions: List[Function] = Field(default_factory=list)


class ParsedContract(_ParsedModel):
    """One parsed source unit: full text, pragma and its contracts."""

    source: str = ""
    pragma: Optional[str] = None
    contracts: List[Contract] = Field(default_factory=list)

    # Unit name reported when the source declares no contracts
    name: Optional[str] = None

    @property
    def content_hash(self) -> str:
        """Get SHA256 hash of the source for caching and report identity."""
        return sha256(self.source.encode()).hexdigest()

    @property
    def contract_names(self) -> List[str]:
        return [c.name for c in self.contracts]

    def get_contract(self, name: str) -> Optional[Contract]:
        """Return the contract with the given name, if any."""
        return next((c for c in self.contracts if c.name == name), None)
