"""Letter-repetition profiles."""

from __future__ import annotations

from collections import Counter

LetterProfile = Counter[str]

_ALPHABET = frozenset("abcdefghijklmnopqrstuvwxyz")


def extract_profile(text: str) -> LetterProfile:
    """Count occurrences of each ASCII letter a-z in ``text``, case-insensitively.

    Anything else (digits, punctuation, accented or non-Latin characters)
    is skipped. An empty or letterless string gives an empty profile.
    """
    return Counter(char for char in text.lower() if char in _ALPHABET)
