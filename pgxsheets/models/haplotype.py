from __future__ import annotations

import re
from collections.abc import Iterable

"""Ordering of allele / haplotype display names.

Star-allele style names (``*1``, ``*2A``, ``*10``) have to be listed in numeral
order, not character order, so that curators see ``*9`` before ``*10``. The
numeral is the digit run right after the last ``*`` (``CYP2D6*9`` sorts
before ``CYP2D6*10``); names without one use their first digit run.

Sort key layout:
    (0, prefix, numeral, name)  for names with a numeral
    (1, name)                   for everything else (listed last)

The full name is always the final component, so two distinct names never
compare equal.
"""

__all__ = [
    "haplotype_sort_key",
    "compare_haplotype_names",
    "sort_haplotype_names",
]

_STAR_PATTERN = re.compile(r"^(.*\*)(\d+)(.*)$", re.DOTALL)
_NAME_PATTERN = re.compile(r"^(\D*)(\d+)(.*)$", re.DOTALL)


def haplotype_sort_key(name: str) -> tuple:
    m = _STAR_PATTERN.match(name) or _NAME_PATTERN.match(name)
    if m is None:
        return (1, name)
    prefix, numeral, _suffix = m.groups()
    return (0, prefix, int(numeral), name)


def compare_haplotype_names(a: str, b: str) -> int:
    """Three-way comparison of two names (-1, 0, 1)."""
    ka, kb = haplotype_sort_key(a), haplotype_sort_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def sort_haplotype_names(names: Iterable[str]) -> list[str]:
    return sorted(names, key=haplotype_sort_key)
