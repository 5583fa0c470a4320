"""Distance between letter profiles."""

from __future__ import annotations

from collections.abc import Mapping


def repetition_distance(first: Mapping[str, int], second: Mapping[str, int]) -> int:
    """Manhattan (L1) distance between two letter-count profiles.

    Letters missing from one profile count as zero. The result is
    symmetric and is 0 only for identical profiles.
    """
    letters = set(first) | set(second)
    return sum(abs(first.get(letter, 0) - second.get(letter, 0)) for letter in letters)
