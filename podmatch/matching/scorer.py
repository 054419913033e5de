"""Match Scorer — multi-factor compatibility between an author and a podcast.

Five sub-scores, each in [0, 1], combined with MatchWeights:
  topic (0.35) · expertise (0.25) · style (0.15) · audience (0.15) · format (0.10)

A missing signal scores NEUTRAL_SCORE and lowers confidence instead.
Pure functions only; no I/O.
"""

import logging
import math

from podmatch.errors import ConfigurationError
from podmatch.schemas import (
    AuthorProfile,
    MatchBreakdown,
    MatchFilter,
    MatchResult,
    MatchWeights,
    PodcastFeatures,
)

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5
MAX_SUGGESTED_TOPICS = 5
REQUIRED_SIGNALS = 8

EXPERTISE_LEVELS = ["beginner", "intermediate", "expert"]

STYLE_COMPATIBILITY = {
    "casual": {"conversational", "storytelling"},
    "professional": {"interview", "educational", "debate"},
    "academic": {"educational", "debate"},
    "storyteller": {"storytelling", "conversational"},
}


class MatchScorer:
    """Scores author/podcast pairs with a fixed set of weights."""

    def __init__(self, weights: MatchWeights | None = None):
        self.weights = weights or MatchWeights()
        _validate_weights(self.weights)

    def score(self, author: AuthorProfile, podcast: PodcastFeatures) -> MatchResult:
        requirements = podcast.guest_requirements

        topic = topic_score(author.topics, podcast.topical_focus)
        expertise = expertise_score(author.expertise, requirements.minimum_expertise)
        style = style_score(author.communication_style, podcast.host_style)
        audience = audience_score(author.expertise, podcast.audience_level)
        fmt = format_score(author, podcast, style)

        w = self.weights
        overall = (
            topic * w.topic
            + expertise * w.expertise
            + style * w.style
            + audience * w.audience
            + fmt * w.format
        )

        breakdown = MatchBreakdown(
            topic_score=topic,
            expertise_score=expertise,
            style_score=style,
            audience_score=audience,
            format_score=fmt,
            explanation=explain(topic, expertise, style, audience),
        )
        return MatchResult(
            author_id=author.id,
            podcast_id=podcast.podcast_id,
            overall_score=overall,
            confidence=_confidence(author, podcast),
            breakdown=breakdown,
            suggested_topics=suggested_topics(author, podcast),
        )

    def rank_candidates(
        self,
        author: AuthorProfile,
        podcasts: list[PodcastFeatures],
        filters: MatchFilter | None = None,
    ) -> list[MatchResult]:
        """Score every candidate, filter, and return best-first."""
        filters = filters or MatchFilter()
        excluded = set(filters.exclude_podcast_ids)

        results = []
        for podcast in podcasts:
            if podcast.podcast_id in excluded:
                continue
            result = self.score(author, podcast)
            if filters.min_score is not None and result.overall_score < filters.min_score:
                continue
            if filters.min_confidence is not None and result.confidence < filters.min_confidence:
                continue
            results.append(result)

        results.sort(key=lambda r: r.overall_score, reverse=True)
        if filters.max_results is not None:
            results = results[:filters.max_results]

        logger.info(
            "Scorer ranked | author=%s | candidates=%d | kept=%d",
            author.id, len(podcasts), len(results),
        )
        return results


# ═══════════════ SUB-SCORES ═══════════════

def topic_score(author_topics: list[str], podcast_topics: list[str]) -> float:
    if not author_topics or not podcast_topics:
        return NEUTRAL_SCORE
    matching = _overlapping(author_topics, podcast_topics)
    return len(matching) / max(len(author_topics), len(podcast_topics))


def expertise_score(author_level: str | None, required_level: str | None) -> float:
    """Author level vs the guest minimum. Any shortfall halves the score."""
    if author_level is None or required_level is None:
        return NEUTRAL_SCORE
    if required_level == "mixed":
        return 1.0
    if EXPERTISE_LEVELS.index(author_level) >= EXPERTISE_LEVELS.index(required_level):
        return 1.0
    return 0.5


def audience_score(author_level: str | None, audience_level: str | None) -> float:
    """Author level vs the audience level. ``mixed`` accepts anyone."""
    if author_level is None or audience_level is None:
        return NEUTRAL_SCORE
    if audience_level == "mixed":
        return 1.0
    gap = EXPERTISE_LEVELS.index(audience_level) - EXPERTISE_LEVELS.index(author_level)
    if gap <= 0:
        return 1.0
    if gap == 1:
        return 0.5
    return 0.2


def style_score(author_style: str | None, host_style: str | None) -> float:
    if author_style is None or host_style is None:
        return NEUTRAL_SCORE
    return 1.0 if host_style in STYLE_COMPATIBILITY.get(author_style, set()) else 0.5


def format_score(author: AuthorProfile, podcast: PodcastFeatures, style: float) -> float:
    """Style fit plus a bonus when the author offers a preferred guest topic.

    Book keywords count as offered topics. No preferred topics is neutral.
    """
    preferred = {t.lower() for t in podcast.guest_requirements.preferred_topics}
    if not preferred:
        return 0.6 * style + 0.4 * NEUTRAL_SCORE

    offered = {t.lower() for t in author.topics}
    for book in author.books:
        offered.update(k.lower() for k in book.keywords)
    return 0.6 * style + (0.4 if preferred & offered else 0.0)


# ═══════════════ EXPLANATION ═══════════════

def explain(topic: float, expertise: float, style: float, audience: float) -> list[str]:
    reasons = []

    if topic > 0.8:
        reasons.append("Strong topic alignment with podcast focus")
    elif topic > 0.4:
        reasons.append("Moderate topic overlap with podcast content")
    else:
        reasons.append("Limited topic relevance to podcast")

    if expertise > 0.8:
        reasons.append("Expertise level matches podcast requirements")
    elif expertise > 0.4:
        reasons.append("Expertise level partially meets requirements")
    else:
        reasons.append("Expertise level may be insufficient")

    if style > 0.8:
        reasons.append("Communication style aligns well with podcast format")
    else:
        reasons.append("Communication style may need adaptation")

    if audience > 0.8:
        reasons.append("Well-suited for podcast audience level")
    else:
        reasons.append("May need to adjust content for audience level")

    return reasons


def suggested_topics(author: AuthorProfile, podcast: PodcastFeatures) -> list[str]:
    """Overlapping topics, then key points that touch the podcast's focus."""
    focus = [t.lower() for t in podcast.topical_focus]
    candidates = _overlapping(author.topics, podcast.topical_focus)
    candidates += [p for p in author.key_points if any(t in p.lower() for t in focus)]

    unique: list[str] = []
    for item in candidates:
        if item not in unique:
            unique.append(item)
    return unique[:MAX_SUGGESTED_TOPICS]


# ═══════════════ HELPERS ═══════════════

def _overlapping(author_topics: list[str], podcast_topics: list[str]) -> list[str]:
    lowered = [t.lower() for t in podcast_topics]
    return [t for t in author_topics if any(t.lower() in p for p in lowered)]


def _confidence(author: AuthorProfile, podcast: PodcastFeatures) -> float:
    signals = [
        bool(author.topics),
        author.expertise is not None,
        author.communication_style is not None,
        podcast.host_style is not None,
        podcast.audience_level is not None,
        podcast.topic_depth is not None,
        bool(podcast.topical_focus),
        podcast.guest_requirements.minimum_expertise is not None,
    ]
    return sum(signals) / REQUIRED_SIGNALS * podcast.confidence


def _validate_weights(weights: MatchWeights) -> None:
    values = weights.model_dump()
    negative = [name for name, value in values.items() if value < 0]
    if negative:
        raise ConfigurationError(f"Match weights must be non-negative: {', '.join(negative)}")
    total = sum(values.values())
    if not math.isclose(total, 1.0, abs_tol=1e-6):
        raise ConfigurationError(f"Match weights must sum to 1, got {total:.6f}")
