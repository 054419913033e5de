"""Results Processor: validate, aggregate and format a batch of raw matches.

The whole batch is validated before anything is computed; one bad match
rejects the batch with a MatchValidationError naming the index and field.
"""

import logging
import math
import re
import time

from podmatch.errors import MatchValidationError
from podmatch.schemas import (
    MatchQuality,
    PodcastMatch,
    ProcessedResults,
    ProcessingOptions,
    RankedMatch,
)

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6
HIGH_STRENGTH = 0.7
MEDIUM_STRENGTH = 0.5

SCORE_WEIGHT = 0.7
CONFIDENCE_WEIGHT = 0.3

# Strength ties within this margin fall back to confidence
STRENGTH_TIE_MARGIN = 0.001


class ResultsProcessor:

    def process_results(self, matches: list[PodcastMatch]) -> ProcessedResults:
        start = time.perf_counter()
        validate_matches(matches)

        average = sum(m.confidence for m in matches) / len(matches) if matches else 0.0

        applied: list[str] = []
        seen: set[str] = set()
        for match in matches:
            for reason in match.match_reasons:
                if reason not in seen:
                    seen.add(reason)
                    applied.append(reason)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Results processed | matches=%d | avg_conf=%.2f | %.2fms",
            len(matches), average, elapsed_ms,
        )
        return ProcessedResults(
            top_matches=tuple(matches),
            total_matches=len(matches),
            average_confidence=average,
            processing_time_ms=elapsed_ms,
            applied_filters=tuple(applied),
        )

    def rank(
        self, matches: list[PodcastMatch], options: ProcessingOptions | None = None,
    ) -> list[RankedMatch]:
        """Grade, filter and order matches by strength for display."""
        options = options or ProcessingOptions()
        validate_matches(matches)

        graded = []
        for match in matches:
            strength = match_strength(match)
            if options.min_confidence is not None and match.confidence < options.min_confidence:
                continue
            if options.min_match_strength is not None and strength < options.min_match_strength:
                continue
            graded.append((match, strength))

        graded.sort(key=_sort_key)
        if options.max_results is not None:
            graded = graded[:options.max_results]

        return [
            RankedMatch(
                **match.model_dump(),
                quality_level=quality_level(match.confidence, strength),
                match_strength=strength,
                rank=i,
                display_reasons=format_reasons(match.match_reasons),
            )
            for i, (match, strength) in enumerate(graded, start=1)
        ]


def validate_matches(matches: list[PodcastMatch]) -> None:
    for i, match in enumerate(matches):
        if not match.podcast_id or not match.podcast_id.strip():
            raise MatchValidationError(f"Match {i}: podcast_id is empty", index=i, field="podcast_id")
        if not math.isfinite(match.overall_score) or match.overall_score < 0:
            raise MatchValidationError(
                f"Match {i}: overall_score must be >= 0, got {match.overall_score}",
                index=i, field="overall_score",
            )
        for name, value in match.factors.items():
            if not math.isfinite(value) or not -1.0 <= value <= 1.0:
                raise MatchValidationError(
                    f"Match {i}: factor '{name}' must be within [-1, 1], got {value}",
                    index=i, field=f"factors.{name}",
                )


def match_strength(match: PodcastMatch) -> float:
    return match.overall_score * SCORE_WEIGHT + match.confidence * CONFIDENCE_WEIGHT


def quality_level(confidence: float, strength: float) -> MatchQuality:
    if confidence >= HIGH_CONFIDENCE and strength >= HIGH_STRENGTH:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE and strength >= MEDIUM_STRENGTH:
        return "medium"
    return "low"


def format_reasons(reasons: list[str]) -> list[str]:
    cleaned = []
    for reason in reasons:
        text = re.sub(r"^[:-]\s*", "", reason.strip())
        text = re.sub(r"\s+", " ", text)
        cleaned.append(re.sub(r"\.$", "", text))
    return cleaned


def _sort_key(item: tuple[PodcastMatch, float]) -> tuple[float, float]:
    match, strength = item
    # Bucket strength so near-equal values compare on confidence
    return (-round(strength / STRENGTH_TIE_MARGIN), -match.confidence)
