"""Release search across indexers for reelgrab."""

from typing import TYPE_CHECKING

import anyio

from .. import logger
from ..indexers import InvalidCredentialsException, RequestException
from ..quality import Candidate, rank_candidates
from ..release import parse

if TYPE_CHECKING:
    from ..indexers import IndexerBase, IndexerResult
    from ..quality import QualityTarget, ScoredCandidate, ScoringSettings
    from ..release import ParsedRelease
    from .models import WantedItem

# Words ignored when comparing titles
_STOP_WORDS = frozenset({"the", "a", "an", "and", "or", "of", "in", "to", "for", "is"})
MIN_TITLE_SIMILARITY = 0.8


def _title_words(title: str) -> list[str]:
    cleaned = "".join(c if c.isalnum() else " " for c in title.lower().replace("'", ""))
    return [word for word in cleaned.split() if word not in _STOP_WORDS]


def title_similarity(release_title: str, wanted_title: str) -> float:
    """Share of words the two titles have in common, 0.0 to 1.0."""
    release_words = _title_words(release_title)
    wanted_words = _title_words(wanted_title)
    if not release_words or not wanted_words:
        return 0.0
    common = len(set(release_words) & set(wanted_words))
    return common / max(len(set(release_words)), len(set(wanted_words)))


def release_matches_item(release: "ParsedRelease", item: "WantedItem") -> bool:
    """Check that a parsed release is actually for the wanted item.

    Titles must be similar, years may differ by one, and TV releases must
    cover the wanted season and episode.
    """
    if title_similarity(release.title, item.title) < MIN_TITLE_SIMILARITY:
        return False
    if item.year and release.year and abs(item.year - release.year) > 1:
        return False
    if item.season is None:
        return True
    if release.season is not None and release.season != item.season:
        return False
    if item.episode is not None:
        return item.episode in release.episodes
    return release.season == item.season and release.is_season_pack


class ReleaseSearcher:
    """Stateless search coordinator.

    Indexers are passed in per call, so a search always uses the current
    set of enabled indexers.
    """

    def __init__(self, timeout: float = 60.0) -> None:
        self.timeout = timeout

    async def _search_indexer(
        self,
        indexer: "IndexerBase",
        item: "WantedItem",
        results: "list[IndexerResult]",
    ) -> None:
        """Search one indexer, treating every failure as a soft skip."""
        query = item.search_query
        with anyio.move_on_after(self.timeout) as cancel_scope:
            try:
                found = await indexer.search(query)
            except InvalidCredentialsException as e:
                logger.error("Indexer %s rejected credentials: %s", indexer.name, e)
                return
            except RequestException as e:
                logger.warning("Indexer %s search failed: %s", indexer.name, e)
                return
            except Exception as e:
                logger.exception("Unexpected error searching %s: %s", indexer.name, e)
                return
            results.extend(found)

        if cancel_scope.cancelled_caught:
            logger.warning(
                "Indexer %s timed out after %.0fs searching for %s",
                indexer.name,
                self.timeout,
                query.query,
            )

    async def search(
        self, item: "WantedItem", indexers: "list[IndexerBase]"
    ) -> "list[IndexerResult]":
        """Query every non-excluded indexer concurrently.

        Args:
            item: Wanted item to search for.
            indexers: Enabled indexers.

        Returns:
            list[IndexerResult]: Raw results from all indexers that answered.
        """
        excluded = {name.lower() for name in item.excluded_indexers}
        selected = [i for i in indexers if i.name.lower() not in excluded]
        if not selected:
            logger.warning("No indexers available to search for %s", item.title)
            return []

        results: list[IndexerResult] = []
        async with anyio.create_task_group() as tg:
            for indexer in selected:
                tg.start_soon(self._search_indexer, indexer, item, results)

        logger.debug(
            "Search for %s returned %d results from %d indexer(s)",
            item.title,
            len(results),
            len(selected),
        )
        return results

    @staticmethod
    def to_candidates(results: "list[IndexerResult]") -> list[Candidate]:
        """Parse raw results, dropping duplicates of the same release title."""
        seen = set()
        candidates = []
        for result in results:
            key = (result.title, result.indexer_name)
            if key in seen:
                continue
            seen.add(key)
            candidates.append(Candidate(parse(result.title), result))
        return candidates

    async def find_candidates(
        self,
        item: "WantedItem",
        indexers: "list[IndexerBase]",
        target: "QualityTarget",
        settings: "ScoringSettings",
    ) -> "list[ScoredCandidate]":
        """Search, parse and rank releases for a wanted item, best first."""
        results = await self.search(item, indexers)
        candidates = []
        for candidate in self.to_candidates(results):
            if release_matches_item(candidate.release, item):
                candidates.append(candidate)
            else:
                logger.debug("Ignoring unrelated release: %s", candidate.result.title)
        ranked = rank_candidates(candidates, target, settings)
        if ranked:
            best = ranked[0]
            logger.debug(
                "Best of %d accepted for %s: %s (score %d)",
                len(ranked),
                item.title,
                best.result.title,
                best.score,
            )
        return ranked
