"""Shared test fixtures and configuration."""

import os

import pytest

# In-memory SQLite and a dummy key; must be set before podmatch.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LISTEN_NOTES_API_KEY", "test-key")

from podmatch.database import build_engine, build_session_factory, init_db  # noqa: E402
from podmatch.schemas import (  # noqa: E402
    AuthorProfile,
    BookInfo,
    GuestRequirements,
    PodcastFeatures,
)
from podmatch.services.match_store import MatchStore  # noqa: E402


class FakeClock:
    """Manual clock; ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def session_factory():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    assert await init_db(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return MatchStore(session_factory)


@pytest.fixture
def author():
    return AuthorProfile(
        id="author-1",
        name="Dana Reyes",
        expertise="expert",
        communication_style="professional",
        topics=["leadership", "remote work"],
        key_points=["Leadership and management at scale depends on trust"],
        books=[BookInfo(title="Distributed by Default", keywords=["management"])],
    )


@pytest.fixture
def podcast():
    return PodcastFeatures(
        podcast_id="pod-1",
        host_style="interview",
        audience_level="intermediate",
        topic_depth="deep",
        topical_focus=["leadership and management", "remote work culture"],
        guest_requirements=GuestRequirements(
            minimum_expertise="intermediate",
            preferred_topics=["management"],
        ),
        confidence=0.9,
    )


@pytest.fixture
def sample_search_response():
    """Listen Notes /search response (podcast type, trimmed)."""
    return {
        "count": 2,
        "total": 37,
        "next_offset": 10,
        "took": 0.12,
        "results": [
            {
                "id": "4d3fe717742d4963a85562e9f84d8c79",
                "title_original": "Remote Leadership Weekly",
                "publisher_original": "Open Office Media",
                "description_original": "Conversations with people who lead distributed teams.",
                "image": "https://cdn.example.com/rlw.jpg",
                "website": "https://rlw.example.com",
                "language": "English",
                "genre_ids": [93, 94],
                "total_episodes": 212,
                "listen_score": 54,
                "explicit_content": False,
                "latest_pub_date_ms": 1717000000000,
            },
            {
                "id": "a2b1c3d4e5f60718293a4b5c6d7e8f90",
                "title_original": "The Management Hour",
                "publisher_original": "Hour Studios",
                "description_original": "Practical management for new managers.",
                "genre_ids": [94],
                "total_episodes": 48,
            },
        ],
    }
