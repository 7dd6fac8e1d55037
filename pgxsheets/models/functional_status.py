from __future__ import annotations

import re
from enum import Enum

"""Accepted allele functional status labels.

Curated files spell the same status in several ways ("No Function",
"no function", "No functione"). Every accepted spelling is listed once in
``_STATUS_LOOKUP``; anything outside it is rejected instead of being stored.
"""

__all__ = [
    "FunctionalStatus",
    "UnknownFunctionalStatus",
    "normalize_functional_status",
]


class UnknownFunctionalStatus(ValueError):
    """Raised when a status label is not in the accepted vocabulary."""


class FunctionalStatus(str, Enum):
    NORMAL = "Normal function"
    DECREASED = "Decreased function"
    NO_FUNCTION = "No function"
    INCREASED = "Increased function"
    POSSIBLE_DECREASED = "Possible decreased function"
    POSSIBLE_INCREASED = "Possible increased function"
    UNCERTAIN = "Uncertain function"
    UNKNOWN = "Unknown function"


def _key(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().casefold()


_STATUS_LOOKUP: dict[str, FunctionalStatus] = {_key(s.value): s for s in FunctionalStatus}
# historical misspellings found in curated files
_STATUS_LOOKUP.update({
    "normal functione": FunctionalStatus.NORMAL,
    "decreased functione": FunctionalStatus.DECREASED,
    "no functione": FunctionalStatus.NO_FUNCTION,
    "increased functione": FunctionalStatus.INCREASED,
    "uncertain functione": FunctionalStatus.UNCERTAIN,
    "unknown functione": FunctionalStatus.UNKNOWN,
})


def normalize_functional_status(text: str | None) -> str | None:
    """Map a curated label to its canonical text.

    Blank input returns None. Raises UnknownFunctionalStatus for labels outside
    the vocabulary.
    """
    if text is None or not text.strip():
        return None
    status = _STATUS_LOOKUP.get(_key(text))
    if status is None:
        raise UnknownFunctionalStatus(f"unknown functional status: {text!r}")
    return status.value
