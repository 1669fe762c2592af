"""
Indexer base module for reelgrab.

Provides the base class, common types and exceptions shared by the
Torznab and Newznab indexer implementations.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import StrEnum
from typing import Any

import msgspec
from aiohttp import ClientError, ClientSession, ClientTimeout
from aiolimiter import AsyncLimiter
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .. import logger


class Protocol(StrEnum):
    """Transfer protocol of a release."""

    TORRENT = "torrent"
    USENET = "usenet"


class MediaKind(StrEnum):
    """Kind of media being searched for or imported."""

    MOVIE = "movie"
    EPISODE = "episode"
    SEASON = "season"


class InvalidCredentialsException(Exception):
    pass


class RequestException(Exception):
    pass


# Reusable retry decorator for capability handshakes
_caps_retry = retry(
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=0.5, max=30),
    before_sleep=before_sleep_log(logging.getLogger("reelgrab"), logging.WARNING),
    retry=retry_if_exception_type(RequestException),
    reraise=True,
)


class SearchQuery(msgspec.Struct, frozen=True, kw_only=True):
    """Search request sent to every indexer.

    Attributes:
        query: Free-text search terms.
        media_kind: Kind of media wanted.
        season: Season number for TV searches.
        episode: Episode number for single-episode searches.
        year: Release year, used to narrow movie searches.
    """

    query: str
    media_kind: MediaKind = MediaKind.MOVIE
    season: int | None = None
    episode: int | None = None
    year: int | None = None


class IndexerResult(msgspec.Struct, frozen=True, kw_only=True):
    """Standardized search result returned by an indexer.

    Attributes:
        title: Raw release title.
        link: Download link (torrent/nzb URL).
        size: Size in bytes, 0 when unknown.
        seeders: Seeder count, None for usenet results.
        published_at: Publication time reported by the indexer.
        indexer_name: Name of the indexer that returned the result.
        protocol: Torrent or usenet.
        magnet_url: Magnet link when the indexer provides one.
        guid: Indexer-unique id of the result.
    """

    title: str
    link: str
    size: int = 0
    seeders: int | None = None
    published_at: datetime | None = None
    indexer_name: str = ""
    protocol: Protocol = Protocol.TORRENT
    magnet_url: str | None = None
    guid: str | None = None

    @property
    def download_link(self) -> str:
        """Magnet link when available, otherwise the plain download link."""
        return self.magnet_url or self.link


class IndexerSpec(msgspec.Struct):
    """Connection and pacing parameters of an indexer."""

    rate_limit_max_requests: int = 2
    rate_limit_period: float = 1.0
    timeout: float = 30.0
    categories: tuple[int, ...] = ()
    limit: int = 100


class IndexerBase(ABC):
    """Base class for HTTP indexers, containing common attributes and methods."""

    protocol = Protocol.TORRENT

    def __init__(
        self,
        name: str,
        url: str,
        api_key: str = "",
        spec: IndexerSpec | None = None,
        session: ClientSession | None = None,
    ) -> None:
        self.spec = spec or IndexerSpec()
        if session is not None:
            self.client = session
        else:
            timeout = ClientTimeout(total=self.spec.timeout, connect=10.0)
            self.client = ClientSession(
                timeout=timeout, headers={"User-Agent": "reelgrab"}
            )

        self.name = name
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.capabilities: dict[str, Any] = {}
        self._rate_limiter = None

    @property
    def rate_limiter(self) -> AsyncLimiter:
        """Get rate limiter for current event loop."""
        if self._rate_limiter is None:
            self._rate_limiter = AsyncLimiter(
                self.spec.rate_limit_max_requests, self.spec.rate_limit_period
            )
        return self._rate_limiter

    async def close(self) -> None:
        """Close the aiohttp ClientSession."""
        await self.client.close()

    async def _request(self, params: dict[str, Any]) -> bytes:
        """Perform a rate-limited GET against the indexer API.

        Raises:
            RequestException: On connection errors or non-200 responses.
        """
        async with self.rate_limiter:
            logger.debug(
                "Indexer %s request: %s",
                self.name,
                {k: v for k, v in params.items() if k != "apikey"},
            )
            try:
                async with self.client.get(self.url, params=params) as response:
                    if response.status in (401, 403):
                        raise InvalidCredentialsException(
                            f"Indexer {self.name} rejected the API key"
                        )
                    if response.status != 200:
                        raise RequestException(
                            f"Indexer {self.name} returned HTTP {response.status}"
                        )
                    return await response.read()
            except ClientError as e:
                raise RequestException(f"Indexer {self.name} unreachable: {e}") from e

    @_caps_retry
    async def fetch_capabilities(self) -> dict[str, Any]:
        """Fetch and cache the indexer capabilities document."""
        body = await self._request(self._build_caps_params())
        self.capabilities = self._parse_capabilities(body)
        logger.debug("Indexer %s capabilities: %s", self.name, self.capabilities)
        return self.capabilities

    async def search(self, query: SearchQuery) -> list[IndexerResult]:
        """Search the indexer.

        Args:
            query: Search request.

        Returns:
            list[IndexerResult]: Results, possibly empty.

        Raises:
            RequestException: On transport or API errors.
            InvalidCredentialsException: When the API key is rejected.
        """
        body = await self._request(self._build_search_params(query))
        results = self._parse_results(body)
        logger.debug("Indexer %s returned %d results", self.name, len(results))
        return results

    # region Abstract Methods

    @abstractmethod
    def _build_search_params(self, query: SearchQuery) -> dict[str, Any]:
        """Build query-string parameters for a search."""

    @abstractmethod
    def _build_caps_params(self) -> dict[str, Any]:
        """Build query-string parameters for a capabilities request."""

    @abstractmethod
    def _parse_results(self, body: bytes) -> list[IndexerResult]:
        """Parse a search response body."""

    @abstractmethod
    def _parse_capabilities(self, body: bytes) -> dict[str, Any]:
        """Parse a capabilities response body."""

    # endregion
