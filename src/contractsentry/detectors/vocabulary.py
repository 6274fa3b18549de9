"""Vocabularies shared by more than one detector."""

import re
from typing import Sequence

from contractsentry.detectors.base import compile_patterns

# Modifier names that restrict callers; matched as case-insensitive substrings
ACCESS_CONTROL_MODIFIERS = (
    "onlyOwner",
    "onlyAdmin",
    "onlyRole",
    "onlyMinter",
    "onlyPauser",
    "onlyGovernance",
    "onlyAuthorized",
    "requiresAuth",
    "auth",
    "restricted",
)

INLINE_ACCESS_GUARDS = (
    r"require\s*\(\s*msg\.sender\s*==\s*\w*owner",
    r"require\s*\(\s*\w*owner\w*(?:\(\))?\s*==\s*msg\.sender",
    r"require\s*\(\s*msg\.sender\s*==\s*\w*admin",
    r"require\s*\(\s*hasRole",
    r"require\s*\(\s*isOwner",
    r"require\s*\(\s*_msgSender\(\)\s*==\s*\w*owner",
    r"if\s*\(\s*msg\.sender\s*!=\s*\w*owner\w*(?:\(\))?\s*\)",
    r"_checkOwner\s*\(",
    r"_checkRole\s*\(",
    r"onlyOwner",
)

_INLINE_ACCESS_PATTERNS = compile_patterns(INLINE_ACCESS_GUARDS, re.IGNORECASE)
_MODIFIER_VOCABULARY = tuple(m.lower() for m in ACCESS_CONTROL_MODIFIERS)


def has_access_control(modifiers: Sequence[str], body: str) -> bool:
    """Whether a function restricts its callers by modifier or inline guard."""
    for modifier in modifiers:
        lowered = modifier.lower()
        if any(vocab in lowered for vocab in _MODIFIER_VOCABULARY):
            return True
    return any(p.search(body) for p in _INLINE_ACCESS_PATTERNS)

