"""Indexer registry and global instance management for reelgrab."""

from contextlib import suppress

import anyio

from .. import logger
from ..config import IndexerConfig
from .indexer_common import IndexerBase, IndexerSpec
from .torznab import NewznabIndexer, TorznabIndexer

# Indexer factory mapping
INDEXER_MAPPING: dict[str, type[IndexerBase]] = {
    "torznab": TorznabIndexer,
    "newznab": NewznabIndexer,
}


def create_indexer(indexer_config: IndexerConfig) -> IndexerBase:
    """Create an indexer instance from its configuration.

    Args:
        indexer_config: Indexer configuration section.

    Returns:
        IndexerBase: Configured indexer.

    Raises:
        ValueError: If the indexer kind is not supported.
    """
    if indexer_config.kind not in INDEXER_MAPPING:
        raise ValueError(f"Unsupported indexer kind: {indexer_config.kind}")

    spec = IndexerSpec(
        rate_limit_max_requests=indexer_config.rate_limit_max_requests,
        rate_limit_period=indexer_config.rate_limit_period,
        categories=tuple(indexer_config.categories),
    )
    return INDEXER_MAPPING[indexer_config.kind](
        name=indexer_config.name,
        url=indexer_config.url,
        api_key=indexer_config.api_key,
        spec=spec,
    )


# Global indexer instances
_indexers_instance: list[IndexerBase] = []
_indexers_lock = anyio.Lock()


async def init_indexers(indexer_configs: list[IndexerConfig]) -> None:
    """Initialize global indexer instances.

    Indexers whose capability handshake fails are still registered: an
    unreachable indexer is a soft failure that the search loop skips.

    Raises:
        RuntimeError: If already initialized.
    """
    global _indexers_instance
    async with _indexers_lock:
        if _indexers_instance:
            raise RuntimeError("Indexers already initialized.")

        logger.section("Connecting Indexers")
        indexers = []
        for indexer_config in indexer_configs:
            if not indexer_config.enabled:
                logger.debug("Skipping disabled indexer: %s", indexer_config.name)
                continue
            indexer = create_indexer(indexer_config)
            try:
                await indexer.fetch_capabilities()
                logger.success("Indexer %s is reachable", indexer.name)
            except Exception as e:
                logger.warning(
                    "Indexer %s (%s) capabilities unavailable: %s",
                    indexer.name,
                    logger.redact_url_password(indexer.url),
                    e,
                )
            indexers.append(indexer)

        logger.info("Registered %d indexer(s)", len(indexers))
        _indexers_instance = indexers


def get_indexers() -> list[IndexerBase]:
    """Get global indexer instances (empty until init_indexers() ran)."""
    return _indexers_instance


async def cleanup_indexers() -> None:
    """Close all indexer sessions and forget them."""
    global _indexers_instance
    async with _indexers_lock:
        for indexer in _indexers_instance:
            with suppress(Exception):
                await indexer.close()
        _indexers_instance = []
