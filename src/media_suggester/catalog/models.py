"""
Media catalog records.

These Pydantic models mirror the JSON a media server returns for movies
and box-set collections (PascalCase keys). Unknown keys are ignored, so a
raw export from the server validates directly.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal


class CatalogModel(BaseModel):
    """Base model accepting both PascalCase keys and field names."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)


class NamedItem(CatalogModel):
    """A studio, genre or tag reference."""

    name: str = ""
    id: int | str | None = None


class Person(CatalogModel):
    """A cast or crew credit."""

    name: str = ""
    id: str = ""
    role: str | None = None
    type: str = Field(default="", description="Credit type, e.g. 'Actor', 'Director'")


class Movie(CatalogModel):
    """A movie record with the metadata rendered into its document."""

    id: str
    name: str = ""
    overview: str | None = None
    official_rating: str | None = None
    critic_rating: float | None = None
    community_rating: float | None = None
    run_time_ticks: int | None = None
    production_year: int | None = None
    taglines: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    genre_items: list[NamedItem] = Field(default_factory=list)
    production_locations: list[str] = Field(default_factory=list)
    studios: list[NamedItem] = Field(default_factory=list)
    people: list[Person] = Field(default_factory=list)
    tag_items: list[NamedItem] = Field(default_factory=list)


class BoxSet(CatalogModel):
    """A collection of related movies (e.g. a franchise)."""

    id: str
    name: str = ""
    movies: list[Movie] = Field(default_factory=list)


class MovieCatalog(CatalogModel):
    """An exported catalog: movies plus the collections they belong to."""

    movies: list[Movie] = Field(default_factory=list)
    collections: list[BoxSet] = Field(default_factory=list)
