"""Response models the reproduction scenarios ask providers to fill."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class MovieRecommendation(BaseModel):
    title: str = Field(description="The title of the recommended movie")
    year: int = Field(description="The year the movie was released")
    genre: str = Field(description="The primary genre of the movie")
    reason: str = Field(description="Why this movie is recommended based on the user's request")
    rating: float = Field(ge=1, le=10, description="Estimated rating out of 10")


class SearchResult(BaseModel):
    summary: str = Field(description="A brief summary of the search results")
    sources: list[str] = Field(description="List of source URLs")
    confidence: float = Field(ge=0, le=1, description="Confidence score between 0 and 1")


def schema_keys(model: type[BaseModel]) -> list[str]:
    """Declared field names of a response model, in order."""
    return list(model.model_fields)


# Hand-written equivalent of MovieRecommendation, for configuring the JSON
# schema at model level rather than deriving it from the pydantic model.
MOVIE_RECOMMENDATION_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "The title of the recommended movie"},
        "year": {"type": "number", "description": "The year the movie was released"},
        "genre": {"type": "string", "description": "The primary genre of the movie"},
        "reason": {"type": "string", "description": "Why this movie is recommended"},
        "rating": {"type": "number", "description": "Estimated rating out of 10"},
    },
    "required": ["title", "year", "genre", "reason", "rating"],
}
