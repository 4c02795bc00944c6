"""
Tests for the generation request model.
"""
import pytest

from caption_engine.core.request import (
    GenerationRequest,
    InvalidRequestError,
    MediaType,
    ProviderFields,
)


class TestFromSelections:
    """Test building requests from wizard selections."""

    def test_selections_are_normalized(self):
        """Display-cased options map onto the lowercase option set."""
        request = GenerationRequest.from_selections(
            mood="Chill",
            media_description="  morning coffee  ",
            goal="Inspire",
            tone="Poetic",
            platform="TikTok",
            media_type="Video"
        )
        assert request.mood == "chill"
        assert request.goal == "inspire"
        assert request.tone == "poetic"
        assert request.platform == "tiktok"
        assert request.media_type == MediaType.VIDEO
        assert request.media_description == "morning coffee"

    def test_platform_defaults_to_instagram(self):
        request = GenerationRequest.from_selections(
            mood="chill", media_description="cat", goal="connect", tone="witty"
        )
        assert request.platform == "instagram"
        assert request.media_type == MediaType.PHOTO

    @pytest.mark.parametrize("field,value", [
        ("mood", ""),
        ("mood", "sleepy"),
        ("tone", "angry"),
        ("goal", "sell"),
        ("platform", "myspace"),
    ])
    def test_invalid_option_rejected(self, field, value):
        selections = {
            "mood": "chill",
            "media_description": "cat",
            "goal": "connect",
            "tone": "witty",
            "platform": "instagram",
        }
        selections[field] = value
        with pytest.raises(InvalidRequestError, match=field):
            GenerationRequest.from_selections(**selections)

    def test_blank_description_rejected(self):
        with pytest.raises(InvalidRequestError, match="media_description is required"):
            GenerationRequest.from_selections(
                mood="chill", media_description="   ", goal="connect", tone="witty"
            )

    def test_unknown_media_type(self):
        with pytest.raises(InvalidRequestError, match="media_type"):
            GenerationRequest.from_selections(
                mood="chill", media_description="cat", goal="connect",
                tone="witty", media_type="gif"
            )


class TestGenerationRequest:
    """Test request immutability and provider projection."""

    def test_request_is_immutable(self, make_request):
        request = make_request()
        with pytest.raises(AttributeError):
            request.mood = "chill"

    def test_each_request_gets_its_own_id(self, make_request):
        assert make_request().request_id != make_request().request_id

    def test_provider_fields_exclude_media(self, make_request):
        """Binary media never reaches the provider-facing projection."""
        request = make_request(image_data=b"\x89PNG...")
        fields = request.provider_fields()

        assert isinstance(fields, ProviderFields)
        assert fields.as_dict() == {
            "mood": "confident",
            "mediaDescription": "beach sunset",
            "goal": "promote",
            "tone": "bold",
            "platform": "instagram",
        }
        assert not hasattr(fields, "image_data")

    def test_record_is_json_safe(self, make_request):
        request = make_request(image_data=b"raw")
        record = request.to_record()
        assert record["requestId"] == request.request_id
        assert record["mediaType"] == "photo"
        assert "image_data" not in record
        assert all(isinstance(v, str) for v in record.values())
