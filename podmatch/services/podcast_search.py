"""Cache-aside podcast search over the Listen Notes client."""

import logging

from podmatch.integrations.listen_notes import ListenNotesClient
from podmatch.schemas import PagingOptions, PodcastSearchResult
from podmatch.services.cache import CacheManager

logger = logging.getLogger(__name__)


class PodcastSearchService:

    def __init__(self, client: ListenNotesClient, cache_manager: CacheManager):
        self.client = client
        self.cache_manager = cache_manager

    async def search(self, query: str, paging: PagingOptions | None = None) -> PodcastSearchResult:
        """Cached search; ApiError from the client propagates unchanged."""
        paging = paging or PagingOptions()
        cached = self.cache_manager.get_search(query, paging)
        if cached is not None:
            logger.info("Search cache HIT | query=%s", query[:80])
            return cached

        result = await self.client.search(query, paging)
        self.cache_manager.cache_search(query, paging, result)
        return result
