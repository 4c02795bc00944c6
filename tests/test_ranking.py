"""
Tests for caption scoring and ranking.
"""
import pytest

from caption_engine.core.ranking import (
    PLATFORM_PROFILES,
    CaptionVariant,
    QualityRating,
    compose_alt_text,
    compose_hashtags,
    rank,
    rating_for,
    score_caption,
)

STRONG_CAPTION = (
    "Golden hour at the beach and I am feeling confident about this new chapter #sunset"
)


class TestCaptionVariant:
    """Test derived variant fields."""

    def create_variant(self, score):
        return CaptionVariant(
            caption="caption",
            hashtags=("a",),
            alt_text="alt",
            quality_score=score,
            tone="bold"
        )

    @pytest.mark.parametrize("score,rating", [
        (1.0, QualityRating.EXCELLENT),
        (0.8, QualityRating.EXCELLENT),
        (0.79, QualityRating.GOOD),
        (0.6, QualityRating.GOOD),
        (0.59, QualityRating.FAIR),
        (0.0, QualityRating.FAIR),
    ])
    def test_rating_buckets(self, score, rating):
        assert rating_for(score) == rating
        assert self.create_variant(score).quality_rating == rating

    @pytest.mark.parametrize("score,percentage", [
        (0.85, 85),
        (0.845, 85),
        (0.5, 50),
        (0.0, 0),
        (1.0, 100),
    ])
    def test_quality_percentage(self, score, percentage):
        assert self.create_variant(score).quality_percentage == percentage

    @pytest.mark.parametrize("score", [-0.1, 1.01])
    def test_score_out_of_range(self, score):
        with pytest.raises(ValueError, match="quality_score"):
            self.create_variant(score)


class TestScoring:
    """Test the quality heuristic."""

    def test_strong_caption_scores_full_marks(self, make_request):
        """Ideal length, one hashtag, mood keyword, references the media."""
        profile = PLATFORM_PROFILES["instagram"]
        assert score_caption(STRONG_CAPTION, make_request(), profile) == 1.0

    def test_short_plain_caption(self, make_request):
        profile = PLATFORM_PROFILES["instagram"]
        assert score_caption("Short", make_request(), profile) == 0.5

    def test_over_platform_limit_penalized(self, make_request):
        profile = PLATFORM_PROFILES["twitter"]
        request = make_request(platform="twitter")
        assert score_caption("z" * 300, request, profile) == pytest.approx(0.1)

    def test_score_is_bounded(self, make_request):
        profile = PLATFORM_PROFILES["twitter"]
        request = make_request(platform="twitter")
        too_many_tags = "x" * 281 + " #a #b #c"
        assert 0.0 <= score_caption(too_many_tags, request, profile) <= 1.0


class TestDerivedText:
    """Test hashtag and alt text composition."""

    def test_hashtags_merge_caption_mood_and_goal(self, make_request):
        tags = compose_hashtags(STRONG_CAPTION, make_request(), PLATFORM_PROFILES["instagram"])
        assert tags == ("sunset", "confidence", "selflove", "newlaunch", "shopsmall")

    def test_hashtags_capped_per_platform(self, make_request):
        request = make_request(platform="twitter")
        tags = compose_hashtags(STRONG_CAPTION, request, PLATFORM_PROFILES["twitter"])
        assert tags == ("sunset", "confidence")

    def test_hashtags_deduplicated(self, make_request):
        tags = compose_hashtags("#Confidence wins", make_request(), PLATFORM_PROFILES["instagram"])
        assert tags.count("confidence") == 1

    def test_alt_text_templates_cycle(self, make_request):
        request = make_request()
        assert compose_alt_text(0, request) == "A beach sunset representing confident energy"
        assert compose_alt_text(1, request) == "Visual representation of promote through beach sunset"
        assert compose_alt_text(2, request) == "Content showcasing bold approach to promote"
        assert compose_alt_text(3, request) == compose_alt_text(0, request)


class TestRank:
    """Test ordering of ranked variants."""

    def test_best_first(self, make_request):
        variants = rank(["Short", STRONG_CAPTION], make_request())
        assert [v.caption for v in variants] == [STRONG_CAPTION, "Short"]
        assert variants[0].quality_rating == QualityRating.EXCELLENT
        assert variants[0].tone == "bold"

    def test_scores_non_increasing(self, make_request):
        candidates = [
            "Short",
            STRONG_CAPTION,
            "A calm beach sunset 😌",
            "z" * 3000,
            "Feeling confident! #one #two",
        ]
        scores = [v.quality_score for v in rank(candidates, make_request())]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_generation_order(self, make_request):
        """Equal scores keep the order the provider produced them in."""
        variants = rank(["First", "Other", "Third"], make_request())
        assert [v.caption for v in variants] == ["First", "Other", "Third"]
        assert len({v.quality_score for v in variants}) == 1

    def test_alt_text_follows_original_position(self, make_request):
        request = make_request()
        variants = rank(["Short", STRONG_CAPTION], request)
        assert variants[0].alt_text == compose_alt_text(1, request)
        assert variants[1].alt_text == compose_alt_text(0, request)

    def test_blank_candidates_dropped(self, make_request):
        assert rank(["", "   ", None], make_request()) == []

    def test_deterministic(self, make_request):
        request = make_request()
        candidates = ["Short", STRONG_CAPTION, "Feeling confident!"]
        assert rank(candidates, request) == rank(candidates, request)
