"""Pydantic models for the retrieval API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from animalmatch.core.matching import MatchResult


class ApiModel(BaseModel):
    """Base for payloads serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MatchedAnimal(ApiModel):
    """The selected animal and how far its letters are from the name."""

    name: str = Field(..., description="Animal name")
    description: str = Field(..., description="Animal description")
    similarity_score: int = Field(..., ge=0, description="Letter distance, lower is closer")


class AnimalResponse(ApiModel):
    """Success payload of the retrieval endpoint."""

    animal: MatchedAnimal
    original_name: str = Field(..., description="Name after trimming and fallback")
    total_animals: int = Field(..., ge=1, description="Number of animals in the catalog")
    closest_matches: int = Field(..., ge=1, description="How many animals tied for closest")

    @classmethod
    def from_match(cls, result: MatchResult, total_animals: int) -> AnimalResponse:
        """Build the payload for a match against a catalog of ``total_animals``."""
        return cls(
            animal=MatchedAnimal(
                name=result.selected.name,
                description=result.selected.description,
                similarity_score=result.min_distance,
            ),
            original_name=result.normalized_name,
            total_animals=total_animals,
            closest_matches=result.tie_count,
        )


class ErrorResponse(BaseModel):
    """Generic error payload; never carries internal details."""

    error: str
