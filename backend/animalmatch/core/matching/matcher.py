"""Pick the catalog animal whose name repeats letters most like the user's."""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from animalmatch.core.catalog import AnimalRecord
from animalmatch.core.errors import EmptyCatalogError

from .profile import extract_profile
from .scorer import repetition_distance

logger = structlog.get_logger("animalmatch.matching")

FALLBACK_NAME = "anonymous"


@dataclass(frozen=True)
class ScoredCandidate:
    """A catalog record with its distance to the user's name."""

    record: AnimalRecord
    distance: int


@dataclass(frozen=True)
class MatchResult:
    """Outcome of a single match.

    tie_count is the number of candidates sharing min_distance; the
    selected record was drawn uniformly from that tie set.
    """

    selected: AnimalRecord
    min_distance: int
    tie_count: int
    normalized_name: str


def normalize_name(user_name: str) -> str:
    """Trim whitespace, substituting the fallback name for blank input."""
    cleaned = user_name.strip()
    return cleaned if cleaned else FALLBACK_NAME


def score_candidates(name: str, catalog: Sequence[AnimalRecord]) -> list[ScoredCandidate]:
    """Score every catalog record against ``name``."""
    user_profile = extract_profile(name)
    return [
        ScoredCandidate(
            record=record,
            distance=repetition_distance(user_profile, extract_profile(record.name)),
        )
        for record in catalog
    ]


def match_name(
    user_name: str,
    catalog: Sequence[AnimalRecord],
    rng: random.Random | None = None,
) -> MatchResult:
    """Match a user name to an animal.

    Args:
        user_name: Raw name as supplied by the caller
        catalog: Candidate records, must not be empty
        rng: Random source used to break ties (module-level random if None)

    Returns:
        MatchResult for the normalized name

    Raises:
        EmptyCatalogError: If the catalog has no records
    """
    if not catalog:
        raise EmptyCatalogError("Cannot match against an empty catalog")

    normalized = normalize_name(user_name)
    candidates = score_candidates(normalized, catalog)

    min_distance = min(candidate.distance for candidate in candidates)
    tied = [candidate for candidate in candidates if candidate.distance == min_distance]
    chooser = rng if rng is not None else random
    selected = chooser.choice(tied)

    logger.debug(
        "Matched name",
        name=normalized,
        animal=selected.record.name,
        distance=min_distance,
        ties=len(tied),
    )

    return MatchResult(
        selected=selected.record,
        min_distance=min_distance,
        tie_count=len(tied),
        normalized_name=normalized,
    )
