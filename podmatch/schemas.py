"""Pydantic models shared across the service.

Split into: podcast directory, author/podcast profiles, matching output,
result processing, match store queries, and API requests.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ═══════════════ PODCAST DIRECTORY (Listen Notes) ═══════════════

class PagingOptions(BaseModel):
    """Query parameters for /search besides the query string itself."""
    offset: int = 0
    type: Literal["podcast", "episode"] = "podcast"
    language: str = "English"
    len_min: int = 10
    len_max: int | None = None
    genre_ids: str | None = None
    only_in: str = "title,description"
    safe_mode: int = 1
    sort_by_date: int = 0


class Podcast(BaseModel):
    """Podcast as returned by the directory (search hit or lookup)."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    title: str = Field(default="", validation_alias=AliasChoices("title", "title_original"))
    publisher: str = Field(
        default="", validation_alias=AliasChoices("publisher", "publisher_original"),
    )
    description: str = Field(
        default="", validation_alias=AliasChoices("description", "description_original"),
    )
    image: str = ""
    website: str | None = None
    language: str = ""
    genre_ids: list[int] = Field(default_factory=list)
    total_episodes: int = 0
    listen_score: int | None = None
    explicit_content: bool = False
    latest_episode_id: str | None = None
    latest_pub_date_ms: int | None = None


class PodcastSearchResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[Podcast] = Field(default_factory=list)
    count: int = 0
    total: int = 0
    next_offset: int | None = None


# ═══════════════ PROFILES ═══════════════

ExpertiseLevel = Literal["beginner", "intermediate", "expert"]
CommunicationStyle = Literal["casual", "professional", "academic", "storyteller"]
AudienceLevel = Literal["beginner", "intermediate", "expert", "mixed"]
HostStyle = Literal["conversational", "interview", "educational", "debate", "storytelling"]
TopicDepth = Literal["surface", "moderate", "deep", "comprehensive"]


class BookInfo(BaseModel):
    id: str = ""
    title: str = ""
    description: str = ""
    genres: list[str] = Field(default_factory=list)
    target_audience: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    publish_date: date | None = None


class AuthorProfile(BaseModel):
    """What the scorer knows about an author. Every signal is optional."""
    id: str
    name: str = ""
    bio: str = ""
    expertise: ExpertiseLevel | None = None
    communication_style: CommunicationStyle | None = None
    topics: list[str] = Field(default_factory=list)
    key_points: list[str] = Field(default_factory=list)
    books: list[BookInfo] = Field(default_factory=list)


class GuestRequirements(BaseModel):
    minimum_expertise: AudienceLevel | None = None
    preferred_topics: list[str] = Field(default_factory=list)
    communication_preference: list[str] = Field(default_factory=list)


class PodcastFeatures(BaseModel):
    """Analysed feature set of a podcast. Sparse analyses leave fields unset."""
    podcast_id: str
    host_style: HostStyle | None = None
    audience_level: AudienceLevel | None = None
    topic_depth: TopicDepth | None = None
    topical_focus: list[str] = Field(default_factory=list)
    guest_requirements: GuestRequirements = Field(default_factory=GuestRequirements)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class EpisodeAnalysis(BaseModel):
    id: str
    podcast_id: str
    episode_number: int = 0
    topics: list[str] = Field(default_factory=list)
    key_points: list[str] = Field(default_factory=list)
    guest_experts: list[str] = Field(default_factory=list)
    content_type: list[str] = Field(default_factory=list)
    timestamp: str = ""


# ═══════════════ MATCHING OUTPUT ═══════════════

class MatchWeights(BaseModel):
    topic: float = 0.35
    expertise: float = 0.25
    style: float = 0.15
    audience: float = 0.15
    format: float = 0.10


class MatchBreakdown(BaseModel):
    topic_score: float
    expertise_score: float
    style_score: float
    audience_score: float
    format_score: float
    explanation: list[str] = Field(default_factory=list)

    def as_factors(self) -> dict[str, float]:
        return {
            "topic": self.topic_score,
            "expertise": self.expertise_score,
            "style": self.style_score,
            "audience": self.audience_score,
            "format": self.format_score,
        }


class MatchResult(BaseModel):
    author_id: str
    podcast_id: str
    overall_score: float
    confidence: float
    breakdown: MatchBreakdown
    suggested_topics: list[str] = Field(default_factory=list)

    def to_podcast_match(self) -> PodcastMatch:
        return PodcastMatch(
            podcast_id=self.podcast_id,
            overall_score=self.overall_score,
            confidence=self.confidence,
            factors=self.breakdown.as_factors(),
            match_reasons=list(self.breakdown.explanation),
        )


class PodcastMatch(BaseModel):
    """Candidate pairing handed to the results processor.

    Deliberately unconstrained: the processor owns validation so it can
    reject a whole batch with a single descriptive error.
    """
    model_config = ConfigDict(frozen=True)

    podcast_id: str
    overall_score: float
    confidence: float
    factors: dict[str, float] = Field(default_factory=dict)
    match_reasons: list[str] = Field(default_factory=list)


class MatchFilter(BaseModel):
    min_score: float | None = None
    min_confidence: float | None = None
    exclude_podcast_ids: list[str] = Field(default_factory=list)
    max_results: int | None = Field(default=None, ge=1)


# ═══════════════ RESULT PROCESSING ═══════════════

MatchQuality = Literal["high", "medium", "low"]


class ProcessedResults(BaseModel):
    model_config = ConfigDict(frozen=True)

    top_matches: tuple[PodcastMatch, ...] = ()
    total_matches: int = 0
    average_confidence: float = 0.0
    processing_time_ms: float = 0.0
    applied_filters: tuple[str, ...] = ()


class ProcessingOptions(BaseModel):
    min_confidence: float | None = None
    min_match_strength: float | None = None
    max_results: int | None = Field(default=None, ge=1)


class RankedMatch(PodcastMatch):
    quality_level: MatchQuality
    match_strength: float
    rank: int
    display_reasons: list[str] = Field(default_factory=list)


# ═══════════════ MATCH STORE ═══════════════

MatchStatus = Literal["viewed", "contacted", "pending", "scheduled", "completed", "rejected"]
RejectionReason = Literal[
    "not_relevant", "audience_mismatch", "no_response", "declined", "scheduling_conflict", "other",
]
ContactMethod = Literal["email", "social", "form", "referral", "other"]
ContactStatus = Literal["sent", "received", "noResponse", "scheduled", "declined"]
SocialPlatform = Literal["twitter", "linkedin", "instagram", "other"]
NoteCategory = Literal["preparation", "outreach", "feedback", "followUp", "general"]


class EmailContactDetails(BaseModel):
    email_address: str
    subject: str | None = None
    template_used: str | None = None


class SocialContactDetails(BaseModel):
    platform: SocialPlatform
    profile_url: str | None = None
    message_url: str | None = None


class MatchFeedback(BaseModel):
    is_relevant: bool
    audience_match: int = Field(ge=1, le=5)
    topic_match: int = Field(ge=1, le=5)
    comments: str | None = None


class SavedMatchQuery(BaseModel):
    author_id: str
    status: MatchStatus | None = None
    is_bookmarked: bool | None = None
    min_match_score: float | None = None
    limit: int | None = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)


class ContactHistoryQuery(BaseModel):
    match_id: str
    author_id: str
    method: ContactMethod | None = None
    status: ContactStatus | None = None
    requires_follow_up: bool | None = None


class NotesQuery(BaseModel):
    match_id: str
    author_id: str
    category: NoteCategory | None = None
    is_pinned: bool | None = None


class CollectionQuery(BaseModel):
    author_id: str
    include_empty: bool = False
    search_term: str | None = None


# ═══════════════ API ═══════════════

class MatchRequest(BaseModel):
    author: AuthorProfile
    podcasts: list[PodcastFeatures] = Field(default_factory=list)
    filters: MatchFilter | None = None
    persist: bool = False
    # Resolved from cached analyses; unresolvable ids are skipped
    podcast_ids: list[str] = Field(default_factory=list)


class RankRequest(MatchRequest):
    options: ProcessingOptions | None = None
