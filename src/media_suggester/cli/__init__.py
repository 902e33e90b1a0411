"""
CLI module - unified command-line interface.

Provides entry points for:
- Creating the schema and indexing a catalog export
- Similarity search by description or by stored movie
- Browsing the stored catalog
"""

from media_suggester.cli.commands import (
    main,
    run_init_cli,
    run_index_cli,
    run_search_cli,
    run_similar_cli,
    run_list_cli,
    run_count_cli,
)

__all__ = [
    "main",
    "run_init_cli",
    "run_index_cli",
    "run_search_cli",
    "run_similar_cli",
    "run_list_cli",
    "run_count_cli",
]
