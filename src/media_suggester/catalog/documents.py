"""
Rendering movies into embeddable text documents.

The rendered text is the canonical content of a Document: its fingerprint
is computed from it, so any change to the layout below re-embeds the whole
catalog on the next indexing run.
"""

from __future__ import annotations

import json
from pathlib import Path

from media_suggester.catalog.models import BoxSet, Movie, MovieCatalog
from media_suggester.storage.document import Document, compute_fingerprint

MAX_ACTORS = 10
TICKS_PER_MINUTE = 600_000_000


def load_catalog(path: Path | str) -> MovieCatalog:
    """Load an exported catalog JSON file ({"Movies": [...], "Collections": [...]})."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return MovieCatalog.model_validate(data)


def build_collection_lookup(collections: dict[str, BoxSet]) -> dict[str, list[str]]:
    """Map each movie id to the ids of the collections containing it."""
    lookup: dict[str, list[str]] = {}
    for collection in collections.values():
        for movie in collection.movies:
            lookup.setdefault(movie.id, []).append(collection.id)
    return lookup


def _number(value: float | None) -> str:
    return "N/A" if value is None else f"{value:g}"


def _bullets(lines: list[str], items, indent: str = "") -> None:
    for item in items:
        lines.append(f"{indent}• {item}")


def render_movie_document(
    movie: Movie,
    collections: dict[str, BoxSet],
    collection_lookup: dict[str, list[str]],
) -> str:
    """Render a movie's metadata as sectioned plain text."""
    lines = ["--- BASIC INFORMATION ---", f"Title: {movie.name}", ""]

    if movie.id in collection_lookup:
        related: list[str] = []
        for collection_id in collection_lookup[movie.id]:
            collection = collections.get(collection_id)
            if collection is None:
                continue
            for other in collection.movies:
                if other.name != movie.name and other.name not in related:
                    related.append(other.name)
        lines += ["--- COLLECTIONS ---", "Other movies in the collection:"]
        _bullets(lines, related)
        lines.append("")

    decade = (movie.production_year or 0) // 10 * 10
    lines += [
        "--- DATES ---",
        f"Production Year: {movie.production_year if movie.production_year is not None else 'N/A'}",
        f"Decade: {decade}",
        "",
        "--- RATINGS & CLASSIFICATION ---",
        f"Community Rating: {_number(movie.community_rating)}",
        f"Critic Rating: {_number(movie.critic_rating)}",
        f"Classification: {movie.official_rating or 'N/A'}",
        "",
    ]

    if movie.run_time_ticks is not None:
        minutes = movie.run_time_ticks // TICKS_PER_MINUTE
        lines += ["--- RUNTIME ---", f"Duration: {minutes} minutes", ""]

    if movie.overview:
        lines += ["--- OVERVIEW ---", movie.overview, ""]

    if movie.taglines:
        lines.append("--- TAGLINES ---")
        _bullets(lines, movie.taglines)
        lines.append("")

    if movie.genres or movie.genre_items:
        lines.append("--- GENRES ---")
        if movie.genres:
            lines.append(f"Genres: {', '.join(movie.genres)}")
        _bullets(lines, (item.name for item in movie.genre_items))
        lines.append("")

    if movie.production_locations:
        lines.append("--- PRODUCTION LOCATIONS ---")
        _bullets(lines, movie.production_locations)
        lines.append("")

    if movie.studios:
        lines.append("--- STUDIOS ---")
        _bullets(lines, (studio.name for studio in movie.studios))
        lines.append("")

    if movie.people:
        lines.append("--- CAST & CREW ---")
        actors: list[str] = []
        others: list[str] = []
        for person in movie.people:
            credit = f"{person.type} - {person.name}"
            if person.type == "Actor" and person.name not in actors:
                actors.append(person.name)
            elif person.name not in actors and credit not in others:
                others.append(credit)

        if actors:
            lines += ["", "Actors:"]
            _bullets(lines, actors[:MAX_ACTORS], indent="  ")
        if others:
            lines += ["", "Other Credits:"]
            _bullets(lines, others, indent="  ")
        lines.append("")

    if movie.tag_items:
        lines.append("--- TAGS ---")
        _bullets(lines, (tag.name for tag in movie.tag_items))
        lines.append("")

    return "\n".join(lines)


def movies_to_documents(
    movies: list[Movie],
    collections: dict[str, BoxSet] | None = None,
    collection_lookup: dict[str, list[str]] | None = None,
) -> list[Document]:
    """Build fingerprinted (not yet embedded) documents for `movies`."""
    collections = collections or {}
    if collection_lookup is None:
        collection_lookup = build_collection_lookup(collections)

    documents = []
    for movie in movies:
        text = render_movie_document(movie, collections, collection_lookup)
        documents.append(
            Document(
                id=movie.id,
                name=movie.name,
                text=text,
                fingerprint=compute_fingerprint(text),
            )
        )
    return documents


def catalog_to_documents(catalog: MovieCatalog) -> list[Document]:
    """Render every movie in an exported catalog."""
    collections = {collection.id: collection for collection in catalog.collections}
    return movies_to_documents(catalog.movies, collections)
