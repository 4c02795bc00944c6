"""
Generation request model.

A request captures the user's wizard selections. It is immutable once
constructed and validated against the fixed option sets.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class MediaType(Enum):
    """Kind of media the caption is written for."""
    PHOTO = "photo"
    VIDEO = "video"


MOOD_OPTIONS = ("chill", "grateful", "confident", "powerful", "inspired")
TONE_OPTIONS = ("playful", "poetic", "bold", "minimal", "witty", "authentic")
GOAL_OPTIONS = ("inspire", "promote", "entertain", "educate", "connect")
PLATFORM_OPTIONS = ("instagram", "tiktok", "twitter", "linkedin", "facebook")

DEFAULT_PLATFORM = "instagram"


class InvalidRequestError(ValueError):
    """Raised when wizard selections do not form a valid request."""


@dataclass(frozen=True)
class ProviderFields:
    """The subset of a request that is sent to a generation provider.

    Binary media never leaves the device through this path.
    """
    mood: str
    media_description: str
    goal: str
    tone: str
    platform: str

    def as_dict(self) -> Dict[str, str]:
        return {
            "mood": self.mood,
            "mediaDescription": self.media_description,
            "goal": self.goal,
            "tone": self.tone,
            "platform": self.platform,
        }


@dataclass(frozen=True)
class GenerationRequest:
    """Validated wizard selections for one caption generation."""
    mood: str
    media_description: str
    goal: str
    tone: str
    platform: str = DEFAULT_PLATFORM
    media_type: MediaType = MediaType.PHOTO
    image_data: Optional[bytes] = field(default=None, repr=False, compare=False)
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        """Validate selections against the option sets."""
        _check_option("mood", self.mood, MOOD_OPTIONS)
        _check_option("tone", self.tone, TONE_OPTIONS)
        _check_option("goal", self.goal, GOAL_OPTIONS)
        _check_option("platform", self.platform, PLATFORM_OPTIONS)
        if not isinstance(self.media_type, MediaType):
            raise InvalidRequestError(f"media_type must be a MediaType, got {self.media_type!r}")
        if not self.media_description or not self.media_description.strip():
            raise InvalidRequestError("media_description is required and cannot be empty")
        if not self.request_id:
            raise InvalidRequestError("request_id cannot be empty")

    @classmethod
    def from_selections(
        cls,
        mood: str,
        media_description: str,
        goal: str,
        tone: str,
        platform: str = DEFAULT_PLATFORM,
        media_type: str = "photo",
        image_data: Optional[bytes] = None,
    ) -> "GenerationRequest":
        """Build a request from raw wizard selections.

        Selections are matched case-insensitively, so "Chill" and "chill"
        are the same mood.

        Raises:
            InvalidRequestError: If a selection is missing or unknown
        """
        try:
            kind = MediaType(str(media_type).strip().lower())
        except ValueError:
            valid = [m.value for m in MediaType]
            raise InvalidRequestError(f"media_type must be one of: {valid}")

        return cls(
            mood=_normalize(mood),
            media_description=(media_description or "").strip(),
            goal=_normalize(goal),
            tone=_normalize(tone),
            platform=_normalize(platform),
            media_type=kind,
            image_data=image_data,
        )

    def provider_fields(self) -> ProviderFields:
        """Strip the request down to what a provider is allowed to see."""
        return ProviderFields(
            mood=self.mood,
            media_description=self.media_description,
            goal=self.goal,
            tone=self.tone,
            platform=self.platform,
        )

    def to_record(self) -> Dict[str, str]:
        """JSON-safe representation for the history store."""
        record = self.provider_fields().as_dict()
        record.update({
            "requestId": self.request_id,
            "mediaType": self.media_type.value,
            "createdAt": self.created_at.isoformat(),
        })
        return record


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _check_option(name: str, value: str, options) -> None:
    if not value:
        raise InvalidRequestError(f"{name} is required")
    if value not in options:
        raise InvalidRequestError(f"{name} must be one of: {list(options)}")
