"""Letter-repetition matching of user names to catalog animals."""

from .matcher import (
    FALLBACK_NAME,
    MatchResult,
    ScoredCandidate,
    match_name,
    normalize_name,
    score_candidates,
)
from .profile import LetterProfile, extract_profile
from .scorer import repetition_distance

__all__ = [
    "FALLBACK_NAME",
    "LetterProfile",
    "MatchResult",
    "ScoredCandidate",
    "extract_profile",
    "match_name",
    "normalize_name",
    "repetition_distance",
    "score_candidates",
]
