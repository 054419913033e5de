"""PodMatch Backend — FastAPI application entry point.

Podcast search for authors plus author/podcast compatibility matching.
Every shared component is built in the lifespan and kept on ``app.state``.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from podmatch.config import settings
from podmatch.errors import ApiError, MatchValidationError
from podmatch.integrations.listen_notes import ListenNotesClient
from podmatch.matching.results_processor import ResultsProcessor
from podmatch.matching.scorer import MatchScorer
from podmatch.pipelines.matching import MatchingPipeline
from podmatch.schemas import MatchRequest, PagingOptions, PodcastFeatures, RankRequest
from podmatch.services.cache import AnalysisCache, CacheManager
from podmatch.services.match_store import MatchStore
from podmatch.services.podcast_search import PodcastSearchService
from podmatch.services.rate_limiter import RateLimiter

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("podmatch")


# ═══════════════ LIFESPAN ═══════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("PodMatch backend starting | has_listen_notes_key=%s", settings.has_listen_notes_key)

    # Initialize database (graceful degradation if unavailable)
    from podmatch.database import async_session_factory, close_db, init_db
    db_ok = await init_db()
    logger.info("Database: %s", "connected" if db_ok else "unavailable (continuing without)")

    cache = AnalysisCache(
        max_entries=settings.cache_max_entries,
        default_ttl=settings.cache_default_ttl_seconds,
        max_age=settings.cache_max_age_seconds,
    )
    cache_manager = CacheManager(cache, settings.analysis_version, search_ttl=settings.cache_ttl_search)
    cache_manager.start_cleanup(settings.cache_cleanup_interval_seconds)

    rate_limiter = RateLimiter(
        settings.search_rate_limit_requests,
        settings.search_rate_limit_window_seconds,
    )
    client = ListenNotesClient(rate_limiter)
    store = MatchStore(async_session_factory) if db_ok else None

    app.state.db_ok = db_ok
    app.state.cache = cache
    app.state.cache_manager = cache_manager
    app.state.rate_limiter = rate_limiter
    app.state.search_service = PodcastSearchService(client, cache_manager)
    app.state.store = store
    app.state.pipeline = MatchingPipeline(
        MatchScorer(), ResultsProcessor(), cache_manager=cache_manager, store=store,
    )

    yield

    await cache_manager.stop_cleanup()
    await close_db()
    logger.info("PodMatch backend shutting down")


# ═══════════════ APP ═══════════════

app = FastAPI(
    title="PodMatch API",
    description="Podcast discovery and author matching API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["POST", "PUT", "OPTIONS", "GET"],
    allow_headers=["Content-Type"],
)


# ═══════════════ ENDPOINTS ═══════════════

@app.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "has_listen_notes_key": settings.has_listen_notes_key,
        "database": request.app.state.db_ok,
    }


@app.get("/api/podcasts/search")
async def search_podcasts(
    request: Request,
    q: str = Query(..., min_length=1),
    offset: int = Query(0, ge=0),
    language: str = "English",
    genre_ids: str | None = None,
):
    paging = PagingOptions(offset=offset, language=language, genre_ids=genre_ids)
    start = time.monotonic()
    try:
        result = await request.app.state.search_service.search(q, paging)
    except ApiError as e:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.error("Podcast search failed | %dms | %s", elapsed_ms, str(e)[:300])
        return JSONResponse(
            status_code=502,
            content={"error": e.message, "upstream_status": e.status_code},
        )

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info("Podcast search | results=%d | %dms", result.count, elapsed_ms)
    return result.model_dump()


@app.post("/api/matches")
async def create_matches(body: MatchRequest, request: Request):
    pipeline = request.app.state.pipeline
    start = time.monotonic()
    try:
        podcasts = await pipeline.collect_candidates(body.podcasts, body.podcast_ids)
        results = await pipeline.execute(body.author, podcasts, body.filters, persist=body.persist)
    except MatchValidationError as e:
        return _rejected_batch(e)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        "Matches computed | author=%s | top=%d | %dms",
        body.author.id, results.total_matches, elapsed_ms,
    )
    return results.model_dump()


@app.post("/api/matches/ranked")
async def rank_matches(body: RankRequest, request: Request):
    pipeline = request.app.state.pipeline
    start = time.monotonic()
    try:
        podcasts = await pipeline.collect_candidates(body.podcasts, body.podcast_ids)
        ranked = pipeline.rank(body.author, podcasts, body.filters, body.options)
    except MatchValidationError as e:
        return _rejected_batch(e)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info("Matches ranked | author=%s | shown=%d | %dms", body.author.id, len(ranked), elapsed_ms)
    return {"matches": [m.model_dump() for m in ranked], "count": len(ranked)}


@app.put("/api/podcasts/{podcast_id}/features")
async def store_features(podcast_id: str, body: PodcastFeatures, request: Request):
    """Accept an analysis produced outside this service and cache it for matching."""
    features = body.model_copy(update={"podcast_id": podcast_id})
    cached = request.app.state.cache_manager.cache_analysis(
        podcast_id, "features", features, features.confidence,
    )
    if not cached:
        return JSONResponse(status_code=503, content={"error": "Analysis cache unavailable"})
    return {"podcast_id": podcast_id, "cached": True}


@app.get("/api/cache/stats")
async def cache_stats(request: Request):
    return request.app.state.cache.stats().model_dump()


def _rejected_batch(e: MatchValidationError) -> JSONResponse:
    logger.warning("Match batch rejected | index=%s | field=%s | %s", e.index, e.field, e)
    return JSONResponse(
        status_code=422,
        content={"error": str(e), "index": e.index, "field": e.field},
    )
