"""Analysis cache: time-boxed, in-process store for expensive derived artifacts.

Payload kinds (tagged by ``kind``):
  - completion: raw LLM response text
  - features:   podcast feature analysis
  - episode:    single-episode analysis
  - search:     a page of podcast search results

Eviction:
  - an entry is never returned once ``now > expires_at``
  - entries older than ``max_age`` are dropped regardless of their own TTL
  - past ``max_entries`` the oldest-*created* entry goes first (FIFO, not LRU)

AnalysisCache raises CacheError; CacheManager turns those into a logged miss
so a cache fault never breaks the caller's primary work.
"""

import asyncio
import contextlib
import fnmatch
import hashlib
import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from cachetools import FIFOCache
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from podmatch.errors import CacheError, CacheErrorKind, ConfigurationError
from podmatch.schemas import EpisodeAnalysis, PagingOptions, PodcastFeatures, PodcastSearchResult

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 500

AnalysisType = Literal["features", "episode"]


# ═══════════════ PAYLOADS ═══════════════

class CompletionPayload(BaseModel):
    kind: Literal["completion"] = "completion"
    response: str


class FeaturesPayload(BaseModel):
    kind: Literal["features"] = "features"
    results: PodcastFeatures
    confidence: float


class EpisodePayload(BaseModel):
    kind: Literal["episode"] = "episode"
    results: EpisodeAnalysis
    confidence: float


class SearchPayload(BaseModel):
    kind: Literal["search"] = "search"
    result: PodcastSearchResult


CachePayload = Annotated[
    Union[CompletionPayload, FeaturesPayload, EpisodePayload, SearchPayload],
    Field(discriminator="kind"),
]
_PAYLOAD_TYPES = (CompletionPayload, FeaturesPayload, EpisodePayload, SearchPayload)
_payload_adapter: TypeAdapter[CachePayload] = TypeAdapter(CachePayload)


# ═══════════════ FINGERPRINTS ═══════════════

def completion_fingerprint(
    prompt: str,
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> str:
    """Key for an LLM completion; omitted parameters collide with their defaults."""
    normalized = json.dumps(
        {
            "prompt": prompt,
            "model": model,
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
            "max_tokens": DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens,
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    return f"completion:{hashlib.sha256(normalized.encode()).hexdigest()[:32]}"


def analysis_fingerprint(podcast_id: str, analysis_type: AnalysisType, version: str) -> str:
    return f"{analysis_type}:{podcast_id}:{version}"


def search_fingerprint(query: str, paging: PagingOptions | dict[str, Any] | None = None) -> str:
    """Key for a directory search; omitted paging collides with the defaults."""
    if not isinstance(paging, PagingOptions):
        paging = PagingOptions.model_validate(paging or {})
    normalized = json.dumps(
        {"query": query.strip().lower(), "paging": paging.model_dump()},
        sort_keys=True,
        ensure_ascii=False,
    )
    return f"search:{hashlib.sha256(normalized.encode()).hexdigest()[:32]}"


# ═══════════════ STORE ═══════════════

@dataclass
class CacheEntry:
    data: str
    created_at: float
    expires_at: float
    usage_count: int = 0


class CacheStats(BaseModel):
    hits: int = 0
    misses: int = 0
    size: int = 0
    eviction_count: int = 0
    errors: int = 0
    oldest_entry: float | None = None
    newest_entry: float | None = None


class _EntryStore(FIFOCache):
    """FIFOCache that reports capacity evictions and tracks creation order."""

    def __init__(self, maxsize: int, on_evict: Callable[[str], None]):
        super().__init__(maxsize)
        self._on_evict = on_evict
        self._created: OrderedDict[str, float] = OrderedDict()

    def __setitem__(self, key, entry):
        super().__setitem__(key, entry)
        self._created[key] = entry.created_at
        self._created.move_to_end(key)

    def __delitem__(self, key):
        super().__delitem__(key)
        del self._created[key]

    def popitem(self):
        key, entry = super().popitem()
        self._on_evict(key)
        return key, entry

    def clear(self):
        super().clear()
        self._created.clear()

    def oldest_created(self) -> float | None:
        return next(iter(self._created.values()), None)

    def newest_created(self) -> float | None:
        return next(reversed(self._created.values()), None)


class AnalysisCache:
    """Process-local cache. All durations are in seconds."""

    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl: float = 86400,
        max_age: float = 604800,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries <= 0:
            raise ConfigurationError(f"max_entries must be positive, got {max_entries}")
        if default_ttl <= 0 or max_age <= 0:
            raise ConfigurationError("default_ttl and max_age must be positive")

        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self.max_age = max_age
        self._clock = clock
        self._entries = _EntryStore(max_entries, on_evict=self._record_eviction)
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._errors = 0

    def get(self, key: str) -> CachePayload | None:
        """Return the payload for ``key``, or None on a miss or stale entry."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._is_stale(entry, now):
            del self._entries[key]
            self._evictions += 1
            self._misses += 1
            logger.debug("Cache STALE | key=%s", key[:40])
            return None

        try:
            payload = _payload_adapter.validate_json(entry.data)
        except ValidationError as e:
            raise CacheError(
                f"Failed to decode cache entry '{key[:40]}'",
                CacheErrorKind.RETRIEVAL_ERROR,
                details=str(e)[:200],
            ) from e

        entry.usage_count += 1
        self._hits += 1
        return payload

    def set(self, key: str, value: CachePayload, ttl: float | None = None) -> None:
        """Store ``value``; re-setting a key makes it the newest entry."""
        if not isinstance(value, _PAYLOAD_TYPES):
            raise CacheError(
                f"Unsupported cache payload type: {type(value).__name__}",
                CacheErrorKind.STORAGE_ERROR,
            )
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise CacheError(f"TTL must be positive, got {ttl}", CacheErrorKind.STORAGE_ERROR)

        try:
            data = value.model_dump_json()
        except ValueError as e:
            raise CacheError(
                f"Failed to serialize cache entry '{key[:40]}'",
                CacheErrorKind.STORAGE_ERROR,
                details=str(e)[:200],
            ) from e

        now = self._clock()
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(data=data, created_at=now, expires_at=now + ttl)
        logger.debug("Cache SET | key=%s | ttl=%ss", key[:40], ttl)

    def invalidate(self, key: str) -> bool:
        if self._entries.pop(key, None) is None:
            return False
        self._evictions += 1
        return True

    def invalidate_matching(self, pattern: str) -> int:
        """Drop every key matching a glob pattern, e.g. ``features:*``."""
        try:
            keys = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
            for k in keys:
                del self._entries[k]
        except Exception as e:
            raise CacheError(
                f"Failed to invalidate keys matching '{pattern}'",
                CacheErrorKind.INVALIDATION_ERROR,
                details=str(e)[:200],
            ) from e
        self._evictions += len(keys)
        if keys:
            logger.info("Cache invalidated %d keys matching '%s'", len(keys), pattern)
        return len(keys)

    def purge_expired(self) -> int:
        now = self._clock()
        stale = [k for k, entry in self._entries.items() if self._is_stale(entry, now)]
        for k in stale:
            del self._entries[k]
        self._evictions += len(stale)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def record_error(self) -> None:
        self._errors += 1

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._entries),
            eviction_count=self._evictions,
            errors=self._errors,
            oldest_entry=self._entries.oldest_created(),
            newest_entry=self._entries.newest_created(),
        )

    def _is_stale(self, entry: CacheEntry, now: float) -> bool:
        return now > entry.expires_at or now - entry.created_at > self.max_age

    def _record_eviction(self, key: str) -> None:
        self._evictions += 1
        logger.debug("Cache EVICT (capacity) | key=%s", key[:40])


# ═══════════════ MANAGER ═══════════════

class CacheManager:
    """Typed helpers over AnalysisCache. Cache faults are logged and read as misses."""

    def __init__(self, cache: AnalysisCache, analysis_version: str, search_ttl: float | None = None):
        self.cache = cache
        self.analysis_version = analysis_version
        self.search_ttl = search_ttl
        self._cleanup_task: asyncio.Task | None = None

    # Completions

    def get_completion(
        self, prompt: str, model: str,
        temperature: float | None = None, max_tokens: int | None = None,
    ) -> str | None:
        key = completion_fingerprint(prompt, model, temperature, max_tokens)
        payload = self._safe_get(key, CompletionPayload)
        return payload.response if payload else None

    def cache_completion(
        self, prompt: str, model: str, response: str,
        temperature: float | None = None, max_tokens: int | None = None,
        ttl: float | None = None,
    ) -> bool:
        key = completion_fingerprint(prompt, model, temperature, max_tokens)
        return self._safe_set(key, CompletionPayload(response=response), ttl)

    # Analyses

    def get_analysis(
        self, podcast_id: str, analysis_type: AnalysisType,
    ) -> PodcastFeatures | EpisodeAnalysis | None:
        key = analysis_fingerprint(podcast_id, analysis_type, self.analysis_version)
        expected = FeaturesPayload if analysis_type == "features" else EpisodePayload
        payload = self._safe_get(key, expected)
        return payload.results if payload else None

    def cache_analysis(
        self,
        podcast_id: str,
        analysis_type: AnalysisType,
        results: PodcastFeatures | EpisodeAnalysis,
        confidence: float,
        ttl: float | None = None,
    ) -> bool:
        key = analysis_fingerprint(podcast_id, analysis_type, self.analysis_version)
        try:
            if analysis_type == "features":
                payload = FeaturesPayload(results=results, confidence=confidence)
            else:
                payload = EpisodePayload(results=results, confidence=confidence)
        except ValidationError as e:
            self.cache.record_error()
            logger.warning("Cache write skipped, bad %s payload | %s", analysis_type, str(e)[:200])
            return False
        return self._safe_set(key, payload, ttl)

    def invalidate_analysis(self, podcast_id: str, analysis_type: AnalysisType) -> bool:
        key = analysis_fingerprint(podcast_id, analysis_type, self.analysis_version)
        return self.cache.invalidate(key)

    # Search responses

    def get_search(self, query: str, paging: PagingOptions | None = None) -> PodcastSearchResult | None:
        payload = self._safe_get(search_fingerprint(query, paging), SearchPayload)
        return payload.result if payload else None

    def cache_search(
        self, query: str, paging: PagingOptions | None, result: PodcastSearchResult,
    ) -> bool:
        key = search_fingerprint(query, paging)
        return self._safe_set(key, SearchPayload(result=result), self.search_ttl)

    # Periodic cleanup

    def start_cleanup(self, interval_seconds: float) -> None:
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval_seconds))

    async def stop_cleanup(self) -> None:
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._cleanup_task
        self._cleanup_task = None

    async def _cleanup_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.cache.purge_expired()
            if removed:
                logger.info("Cache cleanup | removed=%d | size=%d", removed, self.cache.stats().size)

    def _safe_get(self, key: str, expected: type[BaseModel]):
        try:
            payload = self.cache.get(key)
        except CacheError as e:
            self.cache.record_error()
            logger.warning("Cache read failed, treating as miss | kind=%s | %s", e.kind.value, e)
            return None
        if payload is not None and not isinstance(payload, expected):
            logger.warning(
                "Cache kind mismatch | key=%s | expected=%s | got=%s",
                key[:40], expected.__name__, type(payload).__name__,
            )
            return None
        return payload

    def _safe_set(self, key: str, payload: BaseModel, ttl: float | None) -> bool:
        try:
            self.cache.set(key, payload, ttl)
            return True
        except CacheError as e:
            self.cache.record_error()
            logger.warning("Cache write failed, continuing uncached | kind=%s | %s", e.kind.value, e)
            return False
