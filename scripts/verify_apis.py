#!/usr/bin/env python3
"""Real API verification script — run outside sandbox with an actual API key.

Usage:
  1. Fill in LISTEN_NOTES_API_KEY in .env
  2. Run: python scripts/verify_apis.py

Steps:
  Step 1: Verify .env configuration
  Step 2: Listen Notes search (rate limited)
  Step 3: Listen Notes podcast lookup
  Step 4: Score the first results against a sample author
"""

import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def step_header(n: int, title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  Step {n}: {title}")
    print(f"{'='*60}\n")


def ok(msg: str) -> None:
    print(f"  ✅ {msg}")


def fail(msg: str) -> None:
    print(f"  ❌ {msg}")


def info(msg: str) -> None:
    print(f"  ℹ️  {msg}")


def make_client():
    from podmatch.config import settings
    from podmatch.integrations.listen_notes import ListenNotesClient
    from podmatch.services.rate_limiter import RateLimiter

    limiter = RateLimiter(settings.search_rate_limit_requests, settings.search_rate_limit_window_seconds)
    return ListenNotesClient(limiter)


async def step1_verify_env():
    step_header(1, "Verify .env Configuration")
    from podmatch.config import settings

    if settings.listen_notes_api_key:
        ok(f"LISTEN_NOTES_API_KEY: set ({settings.listen_notes_api_key[:6]}...)")
    else:
        fail("LISTEN_NOTES_API_KEY: NOT SET — API steps will fail!")
        return False

    ok(f"Base URL: {settings.listen_notes_base_url}")
    info(f"Rate limit: {settings.search_rate_limit_requests} req / {settings.search_rate_limit_window_seconds}s")
    return True


async def step2_search(client):
    step_header(2, "Listen Notes Search")
    from podmatch.errors import ApiError

    try:
        result = await client.search("remote leadership")
    except ApiError as e:
        fail(f"Search failed: {e}")
        return None

    ok(f"Results: {result.count} of {result.total}")
    for podcast in result.results[:3]:
        info(f"{podcast.id} | {podcast.title[:50]}")
    return result


async def step3_lookup(client, podcast_id: str):
    step_header(3, "Listen Notes Podcast Lookup")
    from podmatch.errors import ApiError

    try:
        podcast = await client.get_podcast(podcast_id)
    except ApiError as e:
        fail(f"Lookup failed: {e}")
        return False

    ok(f"{podcast.title} | episodes={podcast.total_episodes} | genres={podcast.genre_ids}")
    return True


async def step4_score(search_result):
    step_header(4, "Score Results Against a Sample Author")
    from podmatch.matching.results_processor import ResultsProcessor
    from podmatch.matching.scorer import MatchScorer
    from podmatch.schemas import AuthorProfile, PodcastFeatures

    author = AuthorProfile(
        id="verify-author",
        expertise="expert",
        communication_style="professional",
        topics=["leadership", "remote work"],
    )
    # Without an analyzer, features come from the directory text only
    podcasts = [
        PodcastFeatures(podcast_id=p.id, topical_focus=[p.title.lower(), p.description.lower()[:200]])
        for p in search_result.results
    ]
    ranked = MatchScorer().rank_candidates(author, podcasts)
    processed = ResultsProcessor().process_results([r.to_podcast_match() for r in ranked])

    for match in processed.top_matches[:3]:
        info(f"{match.podcast_id} | score={match.overall_score:.2f} | confidence={match.confidence:.2f}")
    ok(f"Scored {processed.total_matches} podcasts in {processed.processing_time_ms:.1f}ms")
    return True


async def main():
    print("\n🎙️  PodMatch — Real API Verification")
    results = {}

    # Step 1: Environment
    results[1] = await step1_verify_env()
    if not results[1]:
        print("\n⚠️  Fill in .env and re-run this script.\n")
        sys.exit(1)

    client = make_client()

    # Step 2: Search
    search_result = await step2_search(client)
    results[2] = search_result is not None

    if not search_result or not search_result.results:
        print("\n⚠️  Skipping lookup and scoring (no search results)")
        results[3] = results[4] = False
    else:
        # Step 3: Lookup
        results[3] = await step3_lookup(client, search_result.results[0].id)

        # Step 4: Scoring
        results[4] = await step4_score(search_result)

    # Summary
    print(f"\n{'='*60}")
    print("  SUMMARY")
    print(f"{'='*60}")
    for step_n, passed in sorted(results.items()):
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"  Step {step_n}: {status}")

    total_passed = sum(1 for v in results.values() if v)
    total = len(results)
    print(f"\n  {total_passed}/{total} steps passed")
    print(f"{'='*60}\n")

    sys.exit(0 if all(results.values()) else 1)


if __name__ == "__main__":
    asyncio.run(main())
