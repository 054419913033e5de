"""Tests for batch validation, aggregation and ranking of matches."""

import pytest
from pydantic import ValidationError

from podmatch.errors import MatchValidationError
from podmatch.matching.results_processor import ResultsProcessor, format_reasons, match_strength, quality_level
from podmatch.schemas import PodcastMatch, ProcessingOptions


@pytest.fixture
def processor():
    return ResultsProcessor()


def make_match(podcast_id="pod", score=0.5, confidence=0.5, reasons=None, factors=None):
    return PodcastMatch(
        podcast_id=podcast_id,
        overall_score=score,
        confidence=confidence,
        factors=factors or {"topic": 0.5},
        match_reasons=reasons or [],
    )


class TestProcessResults:
    def test_empty_batch(self, processor):
        results = processor.process_results([])
        assert results.total_matches == 0
        assert results.average_confidence == 0
        assert results.applied_filters == ()
        assert results.top_matches == ()

    def test_negative_score_rejected(self, processor):
        with pytest.raises(MatchValidationError) as exc:
            processor.process_results([make_match(score=-1)])
        assert exc.value.index == 0
        assert exc.value.field == "overall_score"

    def test_whole_batch_validated_first(self, processor):
        batch = [make_match("a"), make_match("b"), make_match("c", factors={"style": 1.5})]
        with pytest.raises(MatchValidationError) as exc:
            processor.process_results(batch)
        assert exc.value.index == 2
        assert exc.value.field == "factors.style"

    def test_empty_podcast_id_rejected(self, processor):
        with pytest.raises(MatchValidationError) as exc:
            processor.process_results([make_match("ok"), make_match("  ")])
        assert exc.value.index == 1
        assert exc.value.field == "podcast_id"

    def test_negative_factors_allowed(self, processor):
        results = processor.process_results([make_match(factors={"topic": -1.0, "style": 1.0})])
        assert results.total_matches == 1

    def test_duplicate_reasons_collapse(self, processor):
        results = processor.process_results([
            make_match("a", reasons=["topic-match"]),
            make_match("b", reasons=["topic-match"]),
        ])
        assert results.applied_filters == ("topic-match",)

    def test_reasons_keep_first_appearance_order(self, processor):
        results = processor.process_results([
            make_match("a", reasons=["style", "topic"]),
            make_match("b", reasons=["audience", "style"]),
        ])
        assert results.applied_filters == ("style", "topic", "audience")

    def test_aggregates(self, processor):
        batch = [make_match("a", confidence=0.2), make_match("b", confidence=0.8)]
        results = processor.process_results(batch)

        assert results.total_matches == 2
        assert results.average_confidence == pytest.approx(0.5)
        assert [m.podcast_id for m in results.top_matches] == ["a", "b"]
        assert results.processing_time_ms >= 0

    def test_results_are_immutable(self, processor):
        results = processor.process_results([make_match()])
        with pytest.raises(ValidationError):
            results.total_matches = 10
        with pytest.raises(ValidationError):
            results.top_matches[0].overall_score = 0.9


class TestRank:
    def test_strength_and_quality(self):
        assert match_strength(make_match(score=1.0, confidence=0.5)) == pytest.approx(0.85)
        assert quality_level(0.9, 0.9) == "high"
        assert quality_level(0.7, 0.9) == "medium"
        assert quality_level(0.9, 0.6) == "medium"
        assert quality_level(0.5, 0.9) == "low"

    def test_rank_orders_by_strength(self, processor):
        batch = [
            make_match("low", score=0.2, confidence=0.5),
            make_match("high", score=0.9, confidence=0.9),
            make_match("mid", score=0.6, confidence=0.7),
        ]
        ranked = processor.rank(batch)

        assert [m.podcast_id for m in ranked] == ["high", "mid", "low"]
        assert [m.rank for m in ranked] == [1, 2, 3]
        assert [m.quality_level for m in ranked] == ["high", "medium", "low"]

    def test_equal_strength_breaks_on_confidence(self, processor):
        # 0.7 * 0.5 + 0.3 * 0.5 == 0.7 * 0.4 + 0.3 * 0.7333...
        batch = [
            make_match("a", score=0.5, confidence=0.5),
            make_match("b", score=0.4, confidence=0.7333),
        ]
        ranked = processor.rank(batch)
        assert [m.podcast_id for m in ranked] == ["b", "a"]

    def test_rank_filters_and_truncates(self, processor):
        batch = [
            make_match("a", score=0.9, confidence=0.9),
            make_match("b", score=0.8, confidence=0.8),
            make_match("c", score=0.7, confidence=0.3),
        ]
        ranked = processor.rank(batch, ProcessingOptions(min_confidence=0.5, max_results=1))
        assert [m.podcast_id for m in ranked] == ["a"]

        ranked = processor.rank(batch, ProcessingOptions(min_match_strength=0.75))
        assert [m.podcast_id for m in ranked] == ["a", "b"]

    def test_rank_validates(self, processor):
        with pytest.raises(MatchValidationError):
            processor.rank([make_match(score=-0.1)])

    def test_display_reasons(self, processor):
        ranked = processor.rank([make_match(reasons=[" - Strong fit.", ":  topic   overlap"])])
        assert ranked[0].display_reasons == ["Strong fit", "topic overlap"]
        assert ranked[0].match_reasons == [" - Strong fit.", ":  topic   overlap"]

    def test_format_reasons_keeps_inner_punctuation(self):
        assert format_reasons(["v2.0 ready"]) == ["v2.0 ready"]
