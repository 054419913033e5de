"""Listen Notes podcast directory integration (search + podcast lookup).

Docs: https://www.listennotes.com/api/docs/

Every request is paced by the injected RateLimiter. Failures are raised as
ApiError with the upstream status; retrying is left to the caller.
"""

import logging
import time
from typing import Any

import httpx

from podmatch.config import settings
from podmatch.errors import ApiError
from podmatch.schemas import PagingOptions, Podcast, PodcastSearchResult
from podmatch.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    401: "Invalid API key. Please check your configuration.",
    429: "Rate limit exceeded. Please try again later.",
}


class ListenNotesClient:
    """Async client for the Listen Notes API."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: int | None = None,
    ):
        self.rate_limiter = rate_limiter
        self.api_key = api_key if api_key is not None else settings.listen_notes_api_key
        self.base_url = (base_url or settings.listen_notes_base_url).rstrip("/")
        self.timeout = timeout or settings.listen_notes_timeout_seconds

    async def search(self, query: str, paging: PagingOptions | None = None) -> PodcastSearchResult:
        """Search the directory and return one page of typed results."""
        params = self._build_params(query, paging or PagingOptions())
        data = await self._get("/search", params)
        result = PodcastSearchResult.model_validate(data)
        logger.info(
            "Listen Notes search OK | results=%d | total=%d | query=%s",
            result.count, result.total, query[:80],
        )
        return result

    async def get_podcast(self, podcast_id: str) -> Podcast:
        data = await self._get(f"/podcasts/{podcast_id}", {})
        return Podcast.model_validate(data)

    async def search_by_genre(
        self, genre_id: int, paging: PagingOptions | None = None,
    ) -> PodcastSearchResult:
        paging = (paging or PagingOptions()).model_copy(update={"genre_ids": str(genre_id)})
        return await self.search("", paging)

    async def search_by_keywords(
        self, keywords: list[str], paging: PagingOptions | None = None,
    ) -> PodcastSearchResult:
        paging = (paging or PagingOptions()).model_copy(update={"only_in": "title,description"})
        return await self.search(" ".join(keywords), paging)

    async def find_matching_podcasts(
        self, book_title: str, genres: list[str], keywords: list[str],
    ) -> PodcastSearchResult:
        """Search for podcasts likely to host the author of a given book."""
        query = " ".join(part for part in [book_title, *genres, *keywords] if part)
        # Longer minimum episode length filters out trailers and shorts
        paging = PagingOptions(len_min=20, only_in="title,description")
        return await self.search(query, paging)

    def _build_params(self, query: str, paging: PagingOptions) -> dict[str, str]:
        params = {
            "q": query,
            "type": paging.type,
            "offset": str(paging.offset),
            "language": paging.language,
            "len_min": str(paging.len_min),
            "only_in": paging.only_in,
            "safe_mode": str(paging.safe_mode),
            "sort_by_date": str(paging.sort_by_date),
        }
        if paging.len_max is not None:
            params["len_max"] = str(paging.len_max)
        if paging.genre_ids:
            params["genre_ids"] = paging.genre_ids
        return params

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        await self.rate_limiter.wait()

        url = f"{self.base_url}{path}"
        headers = {"X-ListenAPI-Key": self.api_key}
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error("Listen Notes transport error | %s | %dms | %s", path, elapsed_ms, str(e)[:200])
            raise ApiError(None, f"Listen Notes request failed: {str(e)[:200] or type(e).__name__}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if not resp.is_success:
            message = _error_message(resp)
            logger.warning(
                "Listen Notes error | %s | status=%d | %dms | %s",
                path, resp.status_code, elapsed_ms, message[:200],
            )
            raise ApiError(resp.status_code, message)

        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(resp.status_code, "Listen Notes returned a non-JSON body") from e

        logger.debug("Listen Notes OK | %s | %dms", path, elapsed_ms)
        return data


def _error_message(resp: httpx.Response) -> str:
    """Prefer the upstream message; fall back to a per-status default."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if resp.status_code in _STATUS_MESSAGES:
        return _STATUS_MESSAGES[resp.status_code]
    if resp.status_code >= 500:
        return "Listen Notes service is currently unavailable."
    return f"Listen Notes API error (HTTP {resp.status_code})"
