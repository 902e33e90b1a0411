"""
Catalog module - media records and their rendered documents.
"""

from media_suggester.catalog.models import (
    NamedItem,
    Person,
    Movie,
    BoxSet,
    MovieCatalog,
)
from media_suggester.catalog.documents import (
    load_catalog,
    build_collection_lookup,
    render_movie_document,
    movies_to_documents,
    catalog_to_documents,
)

__all__ = [
    # Models
    "NamedItem",
    "Person",
    "Movie",
    "BoxSet",
    "MovieCatalog",
    # Documents
    "load_catalog",
    "build_collection_lookup",
    "render_movie_document",
    "movies_to_documents",
    "catalog_to_documents",
]
