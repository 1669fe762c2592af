"""
Torznab and Newznab indexer implementations.

Both speak the same RSS dialect; they differ in the attribute namespace
and in the protocol of the results they return.
"""

from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any
from xml.etree.ElementTree import Element

from defusedxml import ElementTree

from .. import logger
from .indexer_common import (
    IndexerBase,
    IndexerResult,
    InvalidCredentialsException,
    MediaKind,
    Protocol,
    RequestException,
    SearchQuery,
)

TORZNAB_NS = "http://torznab.com/schemas/2015/feed"
NEWZNAB_NS = "http://www.newznab.com/DTD/2010/feeds/attributes/"

# Newznab error codes 100-199 are account/credential problems
_CREDENTIAL_ERROR_CODES = range(100, 200)

_SEARCH_FUNCTIONS = {
    MediaKind.MOVIE: "movie",
    MediaKind.EPISODE: "tvsearch",
    MediaKind.SEASON: "tvsearch",
}


def _parse_pub_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


class TorznabIndexer(IndexerBase):
    """Torznab indexer (Jackett, Prowlarr and compatible)."""

    protocol = Protocol.TORRENT
    attr_namespace = TORZNAB_NS

    def _base_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.api_key:
            params["apikey"] = self.api_key
        return params

    def _build_caps_params(self) -> dict[str, Any]:
        return {**self._base_params(), "t": "caps"}

    def _build_search_params(self, query: SearchQuery) -> dict[str, Any]:
        function = _SEARCH_FUNCTIONS.get(query.media_kind, "search")
        if self.capabilities and function not in self.capabilities.get("searching", ()):
            function = "search"

        params = {
            **self._base_params(),
            "t": function,
            "q": query.query,
            "limit": self.spec.limit,
            "extended": 1,
        }
        if self.spec.categories:
            params["cat"] = ",".join(str(c) for c in self.spec.categories)
        if function == "tvsearch":
            if query.season is not None:
                params["season"] = query.season
            if query.episode is not None and query.media_kind is MediaKind.EPISODE:
                params["ep"] = query.episode
        elif function == "movie" and query.year is not None:
            params["year"] = query.year
        return params

    def _parse_document(self, body: bytes) -> Element:
        try:
            root = ElementTree.fromstring(body)
        except ElementTree.ParseError as e:
            raise RequestException(f"Indexer {self.name} returned invalid XML: {e}") from e

        if root.tag == "error":
            code = _to_int(root.get("code")) or 0
            description = root.get("description", "unknown error")
            if code in _CREDENTIAL_ERROR_CODES:
                raise InvalidCredentialsException(
                    f"Indexer {self.name}: {description} ({code})"
                )
            raise RequestException(f"Indexer {self.name}: {description} ({code})")
        return root

    def _attributes(self, item: Element) -> dict[str, str]:
        return {
            attr.get("name", ""): attr.get("value", "")
            for attr in item.findall(f"{{{self.attr_namespace}}}attr")
        }

    def _parse_item(self, item: Element) -> IndexerResult | None:
        title = (item.findtext("title") or "").strip()
        enclosure = item.find("enclosure")
        link = (item.findtext("link") or "").strip()
        if not link and enclosure is not None:
            link = enclosure.get("url", "")
        attrs = self._attributes(item)
        magnet_url = attrs.get("magneturl") or None

        if not title or not (link or magnet_url):
            logger.debug("Skipping indexer item without title or link: %r", title)
            return None

        size = _to_int(item.findtext("size")) or _to_int(attrs.get("size"))
        if not size and enclosure is not None:
            size = _to_int(enclosure.get("length"))

        return IndexerResult(
            title=title,
            link=link or magnet_url or "",
            size=size or 0,
            seeders=self._seeders(attrs),
            published_at=_parse_pub_date(item.findtext("pubDate")),
            indexer_name=self.name,
            protocol=self.protocol,
            magnet_url=magnet_url,
            guid=item.findtext("guid"),
        )

    def _seeders(self, attrs: dict[str, str]) -> int | None:
        return _to_int(attrs.get("seeders"))

    def _parse_results(self, body: bytes) -> list[IndexerResult]:
        root = self._parse_document(body)
        results = []
        for item in root.iter("item"):
            result = self._parse_item(item)
            if result is not None:
                results.append(result)
        return results

    def _parse_capabilities(self, body: bytes) -> dict[str, Any]:
        root = self._parse_document(body)
        searching = root.find("searching")
        functions = []
        if searching is not None:
            aliases = {"search": "search", "tv-search": "tvsearch", "movie-search": "movie"}
            functions = [
                aliases[child.tag]
                for child in searching
                if child.tag in aliases and child.get("available") == "yes"
            ]
        categories = [
            int(cat.get("id", "0"))
            for cat in root.iter("category")
            if cat.get("id", "").isdigit()
        ]
        return {"searching": functions, "categories": categories}


class NewznabIndexer(TorznabIndexer):
    """Newznab usenet indexer."""

    protocol = Protocol.USENET
    attr_namespace = NEWZNAB_NS

    def _seeders(self, attrs: dict[str, str]) -> int | None:
        return None
