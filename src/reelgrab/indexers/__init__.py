"""Indexer package for reelgrab."""

from .indexer_common import (
    IndexerBase,
    IndexerResult,
    IndexerSpec,
    InvalidCredentialsException,
    MediaKind,
    Protocol,
    RequestException,
    SearchQuery,
)
from .registry import (
    INDEXER_MAPPING,
    cleanup_indexers,
    create_indexer,
    get_indexers,
    init_indexers,
)
from .torznab import NewznabIndexer, TorznabIndexer

__all__ = [
    "INDEXER_MAPPING",
    "IndexerBase",
    "IndexerResult",
    "IndexerSpec",
    "InvalidCredentialsException",
    "MediaKind",
    "NewznabIndexer",
    "Protocol",
    "RequestException",
    "SearchQuery",
    "TorznabIndexer",
    "cleanup_indexers",
    "create_indexer",
    "get_indexers",
    "init_indexers",
]
