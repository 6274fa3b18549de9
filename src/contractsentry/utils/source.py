"""Text helpers shared by all detectors.

Every detector computes line numbers, locates function bodies and applies the
local-declaration heuristic through these functions so the semantics stay
identical across vulnerability families.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from contractsentry.models.contract import Contract, ContractKind, Function

# Characters inspected before a write site when deciding whether it declares a local
LOOKBACK_WINDOW = 50

_PRIMITIVE_TYPES = r"u?int\d*|bool|address|bytes\d*|byte|string"
_DATA_LOCATIONS = r"memory|calldata|storage"

# Keyword followed by whitespace; casts like address(this) do not count
_DECLARATION_KEYWORD_RE = re.compile(
    rf"\b(?:{_DATA_LOCATIONS}|(?:{_PRIMITIVE_TYPES})(?:\[\w*\])*)\s+(?:[A-Za-z_]|$)"
)
_STATEMENT_BOUNDARY_RE = re.compile(r"[;{}]")
_PRAGMA_RE = re.compile(r"pragma\s+solidity\s+([^;]+);", re.IGNORECASE)
_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")

_ANY_DECLARATION = r"(?:abstract\s+contract|contract|interface|library)"
_DECLARATION_KEYWORDS = {
    ContractKind.CONTRACT: r"(?:abstract\s+)?contract",
    ContractKind.ABSTRACT: r"abstract\s+contract",
    ContractKind.INTERFACE: r"interface",
    ContractKind.LIBRARY: r"library",
}


def line_number_at(source: str, offset: int) -> int:
    """1-based line number of the character at ``offset``."""
    offset = max(0, min(offset, len(source)))
    return source.count("\n", 0, offset) + 1


def locate_body(source: str, body: str) -> Optional[int]:
    """Character offset of a function body inside the full source, if present."""
    if not body:
        return None
    index = source.find(body)
    return index if index >= 0 else None


def body_line_number(source: str, func: Function, offset: int) -> int:
    """Line number of an offset inside ``func.body``.

    Uses the body's position in ``source`` when it can be found there and
    falls back to the declaration line plus newlines inside the body.
    """
    body = func.body or ""
    start = locate_body(source, body)
    if start is not None:
        return line_number_at(source, start + offset)
    return func.line_start + body.count("\n", 0, max(0, offset))


def parse_version_floor(pragma: Optional[str]) -> Optional[Tuple[int, int, int]]:
    """First version named by a pragma constraint, e.g. ``(0, 6, 0)`` for ``>=0.6.0 <0.8.0``.

    Constraint order is taken as written: ``<0.9.0 >=0.7.0`` yields ``(0, 9, 0)``.
    """
    if not pragma:
        return None
    versions = [
        (int(m.group(1)), int(m.group(2)), int(m.group(3) or 0))
        for m in _VERSION_RE.finditer(pragma)
    ]
    if not versions:
        return None
    return versions[0]


def is_vulnerable_to_overflow(pragma: Optional[str]) -> bool:
    """Whether the compiler floor predates built-in overflow checks (0.8.0).

    An unparseable or missing pragma is assumed vulnerable.
    """
    floor = parse_version_floor(pragma)
    if floor is None:
        return True
    return floor < (0, 8, 0)


def extract_solidity_version(source: str) -> Optional[str]:
    """Extract the version constraint from a ``pragma solidity`` statement."""
    match = _PRAGMA_RE.search(source)
    if not match:
        return None
    return match.group(1).strip()


def in_declaration_statement(text: str, offset: int) -> bool:
    """Whether the statement around ``offset`` opens with a declaration keyword.

    Only the last ``LOOKBACK_WINDOW`` characters of the current statement are
    inspected, so ``uint256 amount = ...`` is recognised but a declaration
    further back is not. Type casts like ``uint256(x)`` are not declarations.
    """
    window = text[max(0, offset - LOOKBACK_WINDOW):offset]
    boundaries = list(_STATEMENT_BOUNDARY_RE.finditer(window))
    statement = window[boundaries[-1].end():] if boundaries else window
    return bool(_DECLARATION_KEYWORD_RE.search(statement))


def declared_before(text: str, offset: int, name: str) -> bool:
    """Whether ``name`` is declared with a location or primitive-type prefix before ``offset``."""
    if not name or name.isdigit():
        return False
    declaration = re.compile(
        rf"\b(?:(?:{_PRIMITIVE_TYPES})(?:\[\w*\])*(?:\s+(?:{_DATA_LOCATIONS}))?"
        rf"|\w+(?:\[\w*\])*\s+(?:{_DATA_LOCATIONS}))"
        rf"(?:\s+payable)?\s+{re.escape(name)}\b"
    )
    return bool(declaration.search(text, 0, offset))


def declares_locally(text: str, offset: int, name: Optional[str] = None) -> bool:
    """Textual guess whether the write at ``offset`` targets a local variable.

    This is not scope analysis: anything not visibly declared as a local is
    presumed to be storage, so shadowed names and locals declared elsewhere
    are misclassified.
    """
    if in_declaration_statement(text, offset):
        return True
    return bool(name) and declared_before(text, offset, name)


def contract_spans(source: str, contracts: Sequence[Contract]) -> Dict[str, Tuple[int, int]]:
    """Character span of each contract declaration found in ``source``.

    A span runs from the declaration keyword to the next declaration (or end
    of source). The keyword of the contract's ``kind`` is tried first, then
    any declaration keyword. Contracts whose declaration cannot be found are
    omitted.
    """
    starts: List[Tuple[int, str]] = []
    for contract in contracts:
        match = None
        for keyword in (_DECLARATION_KEYWORDS[contract.kind], _ANY_DECLARATION):
            match = re.search(rf"\b{keyword}\s+{re.escape(contract.name)}\b", source)
            if match:
                break
        if match:
            starts.append((match.start(), contract.name))

    starts.sort()
    spans: Dict[str, Tuple[int, int]] = {}
    for i, (start, name) in enumerate(starts):
        end = starts[i + 1][0] if i + 1 < len(starts) else len(source)
        spans[name] = (start, end)
    return spans


def owning_contract(
    spans: Dict[str, Tuple[int, int]],
    offset: int,
    default: Optional[str] = None,
) -> Optional[str]:
    """Name of the contract whose span contains ``offset``."""
    for name, (start, end) in spans.items():
        if start <= offset < end:
            return name
    return default


def function_containing(contract: Contract, source: str, offset: int) -> Optional[Function]:
    """The function of ``contract`` whose located body contains ``offset``."""
    for func in contract.functions:
        start = locate_body(source, func.body or "")
        if start is not None and start <= offset < start + len(func.body or ""):
            return func
    return None
