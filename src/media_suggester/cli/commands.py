"""
CLI commands - entry points for indexing and querying.

Each command follows a consistent pattern:
1. Parse arguments
2. Build components from the config
3. Run the operation
4. Print results
5. Return exit code

Commands are thin wrappers: the work happens in the store, the indexer
and the query service, which keeps them testable without a terminal.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

from dotenv import load_dotenv

from media_suggester.catalog import catalog_to_documents, load_catalog
from media_suggester.config import SuggesterConfig
from media_suggester.core.errors import SuggesterError
from media_suggester.core.protocols import SimilarityResult
from media_suggester.embeddings import get_embedding_provider
from media_suggester.indexing import index_documents
from media_suggester.observability import build_tracer, init_tracing, shutdown_tracing
from media_suggester.service import SuggesterService
from media_suggester.sessions import get_session_manager
from media_suggester.similarity import SimilarityEngine
from media_suggester.storage import get_document_store

logger = logging.getLogger(__name__)


def _load_env() -> None:
    """Load environment variables from .env file."""
    load_dotenv()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_service(config: SuggesterConfig, use_mock: bool = False):
    """Open the store and wire the query service around it."""
    tracer = build_tracer(config)
    store = get_document_store(config, tracer=tracer)
    store.initialize()
    engine = SimilarityEngine(store, tracer=tracer)
    embeddings = get_embedding_provider(config, use_mock=use_mock)
    sessions = get_session_manager(config)
    return store, engine, SuggesterService(config, store, engine, embeddings, sessions)


def _print_results(results: list[SimilarityResult]) -> None:
    for result in results:
        print(f"  [{result.score:.4f}] {result.document.name} ({result.document.id})")


def run_init_cli(argv: list[str] | None = None, config: SuggesterConfig | None = None) -> int:
    """CLI entry point: create the schema."""
    parser = argparse.ArgumentParser(description="Create the document table")
    parser.parse_args(argv)
    config = config or SuggesterConfig.from_env()

    store = get_document_store(config)
    try:
        store.initialize()
    finally:
        store.close()
    print(f"Storage ready ({config.table_name})")
    return 0


def run_index_cli(argv: list[str] | None = None, config: SuggesterConfig | None = None) -> int:
    """CLI entry point: embed and store a catalog export."""
    parser = argparse.ArgumentParser(description="Index movies from a catalog JSON export")
    parser.add_argument("catalog", help="Path to the catalog JSON file")
    parser.add_argument("--batch-size", type=int, default=None, help="Documents per batch")
    parser.add_argument(
        "--mock-embeddings", action="store_true", help="Use deterministic fake embeddings"
    )
    args = parser.parse_args(argv)
    config = config or SuggesterConfig.from_env()

    print("Adding movie embeddings to storage...")
    documents = catalog_to_documents(load_catalog(args.catalog))

    tracer = build_tracer(config)
    store = get_document_store(config, tracer=tracer)
    try:
        store.initialize()
        report = index_documents(
            documents,
            store,
            get_embedding_provider(config, use_mock=args.mock_embeddings),
            batch_size=args.batch_size or config.index_batch_size,
            tracer=tracer,
        )
    finally:
        store.close()

    print(f"Added {report.saved} new/updated documents to storage ({report.skipped} unchanged).")
    return 0


def run_search_cli(argv: list[str] | None = None, config: SuggesterConfig | None = None) -> int:
    """CLI entry point: movies similar to a free-text description."""
    parser = argparse.ArgumentParser(description="Search for movies by description")
    parser.add_argument("text", help="Description of the movie you are looking for")
    parser.add_argument("--top-n", type=int, default=None, help="Number of results")
    parser.add_argument(
        "--mock-embeddings", action="store_true", help="Use deterministic fake embeddings"
    )
    args = parser.parse_args(argv)
    config = config or SuggesterConfig.from_env()

    store, _, service = _build_service(config, use_mock=args.mock_embeddings)
    try:
        started = time.perf_counter()
        results = service.search_by_description(args.text, top_n=args.top_n)
        elapsed_ms = (time.perf_counter() - started) * 1000
    finally:
        store.close()

    print(f"Similarity search completed in {elapsed_ms:.2f} ms. Top results:")
    _print_results(results)
    return 0


def run_similar_cli(argv: list[str] | None = None, config: SuggesterConfig | None = None) -> int:
    """CLI entry point: movies similar to a stored movie."""
    parser = argparse.ArgumentParser(description="Find movies similar to a stored movie")
    parser.add_argument("doc_id", help="Id of the stored movie")
    parser.add_argument("--top-n", type=int, default=None, help="Number of results")
    parser.add_argument(
        "--full-scan", action="store_true", help="Rank by sorting the whole corpus"
    )
    args = parser.parse_args(argv)
    config = config or SuggesterConfig.from_env()

    store, engine, service = _build_service(config)
    try:
        doc = store.get(args.doc_id)
        if doc is None:
            print(f"Could not find a movie with id '{args.doc_id}'.")
            return 1
        print(f"Searching for movies similar to: {doc.name} ({doc.id})")
        top_n = service.clamp_top_n(args.top_n)
        if args.full_scan:
            results = engine.find_similar_full_scan(doc, top_n=top_n)
        else:
            results = engine.find_similar(doc, top_n=top_n)
    finally:
        store.close()

    _print_results(results)
    return 0


def run_list_cli(argv: list[str] | None = None, config: SuggesterConfig | None = None) -> int:
    """CLI entry point: movies whose name matches a filter."""
    parser = argparse.ArgumentParser(description="List stored movies by name")
    parser.add_argument("name_filter", nargs="?", default="", help="Case-insensitive name filter")
    parser.add_argument("--limit", type=int, default=20, help="Maximum rows (max 100)")
    args = parser.parse_args(argv)
    config = config or SuggesterConfig.from_env()

    store, _, service = _build_service(config)
    try:
        shown, total = service.list_matching(args.name_filter, limit=args.limit)
    finally:
        store.close()

    print(f"Showing {len(shown)} of {total} movies:\n")
    for position, doc in enumerate(shown, start=1):
        print(f" - {position} : {doc.name} (Id: {doc.id})")
    if total > len(shown):
        print(f"\n... and {total - len(shown)} more.")
    return 0


def run_count_cli(argv: list[str] | None = None, config: SuggesterConfig | None = None) -> int:
    """CLI entry point: number of stored movies."""
    parser = argparse.ArgumentParser(description="Count stored movies")
    parser.parse_args(argv)
    config = config or SuggesterConfig.from_env()

    store, _, service = _build_service(config)
    try:
        total = service.count()
    finally:
        store.close()

    print(f"There are {total} movies indexed in the database.")
    return 0


def main() -> int:
    """
    Main CLI entry point with subcommands.

    Usage:
        media-suggester init                 # Create the table
        media-suggester index catalog.json   # Embed and store movies
        media-suggester search "space alien" # Search by description
        media-suggester similar 12345        # Movies like a stored one
        media-suggester list star --limit 5  # Name search
        media-suggester count                # Corpus size
    """
    _load_env()

    parser = argparse.ArgumentParser(
        description="Media suggester - embedding store and similarity search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  init        Create the document table and indexes
  index       Embed and store movies from a catalog export
  search      Find movies similar to a text description
  similar     Find movies similar to a stored movie
  list        List stored movies whose name matches a filter
  count       Show how many movies are stored

Examples:
  media-suggester index export.json --batch-size 16
  media-suggester search "An alien on a space ship" --top-n 15
  media-suggester similar 4242 --full-scan
        """,
    )

    parser.add_argument(
        "command",
        choices=["init", "index", "search", "similar", "list", "count"],
        help="Command to run",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    # Parse just the command first
    args, remaining = parser.parse_known_args()
    _setup_logging(args.verbose)

    commands = {
        "init": run_init_cli,
        "index": run_index_cli,
        "search": run_search_cli,
        "similar": run_similar_cli,
        "list": run_list_cli,
        "count": run_count_cli,
    }

    config = SuggesterConfig.from_env()
    provider = init_tracing(config)
    try:
        return commands[args.command](remaining, config=config)
    except SuggesterError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    finally:
        shutdown_tracing(provider)


if __name__ == "__main__":
    sys.exit(main())
