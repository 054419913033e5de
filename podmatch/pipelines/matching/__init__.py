"""Matching pipeline.

Flow: resolve features (cache → analyzer) → score + rank → process results → optional persist

`rank` is the display path: the same scoring, graded and ordered by match strength.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from podmatch.errors import DuplicateRecordError
from podmatch.matching.results_processor import ResultsProcessor
from podmatch.matching.scorer import MatchScorer
from podmatch.schemas import (
    AuthorProfile,
    MatchFilter,
    PodcastFeatures,
    ProcessedResults,
    ProcessingOptions,
    RankedMatch,
)
from podmatch.services.cache import CacheManager
from podmatch.services.match_store import MatchStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 5

PodcastAnalyzer = Callable[[str], Awaitable[PodcastFeatures]]


async def no_analyzer(podcast_id: str) -> PodcastFeatures:
    """Default analyzer when analyses only arrive through the cache."""
    raise LookupError(f"No cached analysis for podcast '{podcast_id}'")


class MatchingPipeline:
    """Orchestrates scoring, result processing and persistence for one author."""

    def __init__(
        self,
        scorer: MatchScorer,
        processor: ResultsProcessor,
        cache_manager: CacheManager | None = None,
        store: MatchStore | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        analyzer: PodcastAnalyzer = no_analyzer,
    ):
        self.scorer = scorer
        self.processor = processor
        self.cache_manager = cache_manager
        self.store = store
        self.max_concurrent = max_concurrent
        self.analyzer = analyzer

    async def resolve_features(
        self, podcast_ids: list[str], analyzer: PodcastAnalyzer,
    ) -> list[PodcastFeatures]:
        """Cached feature analyses first; the analyzer runs only for misses.

        Failed analyses are skipped. Output order follows ``podcast_ids``.
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def resolve(podcast_id: str) -> PodcastFeatures | None:
            if self.cache_manager is not None:
                cached = self.cache_manager.get_analysis(podcast_id, "features")
                if cached is not None:
                    return cached

            async with semaphore:
                try:
                    features = await analyzer(podcast_id)
                except Exception as e:
                    logger.warning("Podcast analysis failed | id=%s | %s", podcast_id, str(e)[:200])
                    return None

            if self.cache_manager is not None:
                self.cache_manager.cache_analysis(podcast_id, "features", features, features.confidence)
            return features

        resolved = await asyncio.gather(*(resolve(pid) for pid in podcast_ids))
        features = [f for f in resolved if f is not None]
        logger.info("Features resolved | requested=%d | resolved=%d", len(podcast_ids), len(features))
        return features

    async def collect_candidates(
        self,
        podcasts: list[PodcastFeatures],
        podcast_ids: list[str],
        analyzer: PodcastAnalyzer | None = None,
    ) -> list[PodcastFeatures]:
        """Inline features plus resolved ids. Ids already given inline are not resolved."""
        inline = {p.podcast_id for p in podcasts}
        pending = [pid for pid in dict.fromkeys(podcast_ids) if pid not in inline]
        if not pending:
            return list(podcasts)
        resolved = await self.resolve_features(pending, analyzer or self.analyzer)
        return [*podcasts, *resolved]

    async def execute(
        self,
        author: AuthorProfile,
        podcasts: list[PodcastFeatures],
        filters: MatchFilter | None = None,
        persist: bool = False,
    ) -> ProcessedResults:
        logger.info("Matching pipeline | author=%s | candidates=%d", author.id, len(podcasts))

        ranked = self.scorer.rank_candidates(author, podcasts, filters)
        results = self.processor.process_results([r.to_podcast_match() for r in ranked])

        if persist:
            await self._persist(author.id, results)
        return results

    def rank(
        self,
        author: AuthorProfile,
        podcasts: list[PodcastFeatures],
        filters: MatchFilter | None = None,
        options: ProcessingOptions | None = None,
    ) -> list[RankedMatch]:
        scored = self.scorer.rank_candidates(author, podcasts, filters)
        ranked = self.processor.rank([r.to_podcast_match() for r in scored], options)
        logger.info(
            "Matches ranked | author=%s | candidates=%d | shown=%d",
            author.id, len(podcasts), len(ranked),
        )
        return ranked

    async def _persist(self, author_id: str, results: ProcessedResults) -> None:
        if self.store is None:
            logger.warning("Persist requested but no match store is configured")
            return

        saved = 0
        for match in results.top_matches:
            try:
                await self.store.save_match(
                    author_id, match.podcast_id, match.overall_score, list(match.match_reasons),
                )
                saved += 1
            except DuplicateRecordError:
                logger.info("Match already saved | author=%s | podcast=%s", author_id, match.podcast_id)
        logger.info("Matches persisted | author=%s | saved=%d", author_id, saved)
