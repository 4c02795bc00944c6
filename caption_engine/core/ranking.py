"""
Caption variant scoring and ranking.

Turns raw provider captions into annotated variants, best first.
Everything here is deterministic: the same captions and request always
produce the same hashtags, alt text, scores and order.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, List, Sequence, Tuple

from .request import GenerationRequest


class QualityRating(Enum):
    """User-facing quality buckets."""
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"


# Bucket lower bounds, highest first
RATING_THRESHOLDS: Tuple[Tuple[float, QualityRating], ...] = (
    (0.8, QualityRating.EXCELLENT),
    (0.6, QualityRating.GOOD),
)


def rating_for(score: float) -> QualityRating:
    for threshold, rating in RATING_THRESHOLDS:
        if score >= threshold:
            return rating
    return QualityRating.FAIR


@dataclass(frozen=True)
class CaptionVariant:
    """One ranked caption with its derived metadata."""
    caption: str
    hashtags: Tuple[str, ...]
    alt_text: str
    quality_score: float
    tone: str

    def __post_init__(self):
        """Validate score range."""
        if not 0.0 <= self.quality_score <= 1.0:
            raise ValueError("quality_score must be between 0 and 1")

    @property
    def quality_percentage(self) -> int:
        percent = Decimal(str(self.quality_score)) * 100
        return int(percent.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @property
    def quality_rating(self) -> QualityRating:
        return rating_for(self.quality_score)

    def to_record(self) -> Dict:
        """JSON-safe representation for the history store."""
        return {
            "caption": self.caption,
            "hashtags": list(self.hashtags),
            "altText": self.alt_text,
            "qualityScore": self.quality_score,
            "tone": self.tone,
        }


@dataclass(frozen=True)
class PlatformProfile:
    """Length and hashtag conventions of a social platform."""
    max_chars: int
    ideal_min: int
    ideal_max: int
    max_hashtags: int


PLATFORM_PROFILES: Dict[str, PlatformProfile] = {
    "instagram": PlatformProfile(max_chars=2200, ideal_min=70, ideal_max=220, max_hashtags=5),
    "tiktok": PlatformProfile(max_chars=2200, ideal_min=40, ideal_max=150, max_hashtags=4),
    "twitter": PlatformProfile(max_chars=280, ideal_min=50, ideal_max=200, max_hashtags=2),
    "linkedin": PlatformProfile(max_chars=3000, ideal_min=100, ideal_max=400, max_hashtags=3),
    "facebook": PlatformProfile(max_chars=63206, ideal_min=40, ideal_max=250, max_hashtags=3),
}

MOOD_HASHTAGS: Dict[str, Tuple[str, ...]] = {
    "chill": ("chillvibes", "relax"),
    "grateful": ("grateful", "thankful"),
    "confident": ("confidence", "selflove"),
    "powerful": ("strength", "unstoppable"),
    "inspired": ("inspiration", "creativity"),
}

GOAL_HASHTAGS: Dict[str, Tuple[str, ...]] = {
    "inspire": ("motivation", "inspire"),
    "promote": ("newlaunch", "shopsmall"),
    "entertain": ("goodvibes", "funny"),
    "educate": ("didyouknow", "learnsomething"),
    "connect": ("community", "letstalk"),
}

# Words that count as hitting the requested mood
MOOD_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "chill": ("chill", "relax", "calm", "easy", "slow"),
    "grateful": ("grateful", "thankful", "thank", "blessed", "appreciate"),
    "confident": ("confident", "confidence", "bold", "own it", "believe"),
    "powerful": ("power", "strong", "strength", "unstoppable", "fierce"),
    "inspired": ("inspire", "inspired", "dream", "create", "spark"),
}

ALT_TEXT_TEMPLATES: Tuple[str, ...] = (
    "A {description} representing {mood} energy",
    "Visual representation of {goal} through {description}",
    "Content showcasing {tone} approach to {goal}",
)

_HASHTAG_PATTERN = re.compile(r"#(\w+)", re.UNICODE)
_WORD_PATTERN = re.compile(r"[a-z0-9']+")


def rank(raw_candidates: Sequence[str], request: GenerationRequest) -> List[CaptionVariant]:
    """Score raw captions and order them best first.

    Blank candidates are dropped. Ties keep the order in which the
    provider generated them.

    Args:
        raw_candidates: Captions in provider order
        request: The request the captions were generated for

    Returns:
        Variants sorted by descending quality score
    """
    profile = PLATFORM_PROFILES[request.platform]
    variants = []
    for index, raw in enumerate(raw_candidates):
        caption = (raw or "").strip()
        if not caption:
            continue
        variants.append(CaptionVariant(
            caption=caption,
            hashtags=compose_hashtags(caption, request, profile),
            alt_text=compose_alt_text(index, request),
            quality_score=score_caption(caption, request, profile),
            tone=request.tone
        ))

    # sorted() is stable, so first-generated wins ties
    return sorted(variants, key=lambda v: v.quality_score, reverse=True)


def compose_hashtags(
    caption: str,
    request: GenerationRequest,
    profile: PlatformProfile
) -> Tuple[str, ...]:
    """Hashtags already in the caption, then mood and goal tags, capped per platform."""
    tags: List[str] = []
    candidates = (
        [tag.lower() for tag in _HASHTAG_PATTERN.findall(caption)]
        + list(MOOD_HASHTAGS.get(request.mood, ()))
        + list(GOAL_HASHTAGS.get(request.goal, ()))
    )
    for tag in candidates:
        if tag not in tags:
            tags.append(tag)
    return tuple(tags[:profile.max_hashtags])


def compose_alt_text(index: int, request: GenerationRequest) -> str:
    template = ALT_TEXT_TEMPLATES[index % len(ALT_TEXT_TEMPLATES)]
    return template.format(
        description=request.media_description,
        mood=request.mood,
        goal=request.goal,
        tone=request.tone
    )


def score_caption(caption: str, request: GenerationRequest, profile: PlatformProfile) -> float:
    """Heuristic quality score in [0, 1].

    Rewards captions that fit the platform's ideal length, use a sensible
    number of hashtags, hit the requested mood and reference the media.
    """
    text = caption.strip()
    lowered = text.lower()
    length = len(text)
    score = 0.40

    if profile.ideal_min <= length <= profile.ideal_max:
        score += 0.25
    elif length <= profile.max_chars:
        score += 0.10
    else:
        score -= 0.30

    hashtag_count = len(_HASHTAG_PATTERN.findall(text))
    if 1 <= hashtag_count <= profile.max_hashtags:
        score += 0.10
    elif hashtag_count > profile.max_hashtags:
        score -= 0.05

    if any(keyword in lowered for keyword in MOOD_KEYWORDS.get(request.mood, ())):
        score += 0.10

    description_words = {
        word for word in _WORD_PATTERN.findall(request.media_description.lower())
        if len(word) > 3
    }
    if description_words & set(_WORD_PATTERN.findall(lowered)):
        score += 0.15

    # emoji and other pictographs
    if any(ord(ch) > 0x2000 for ch in text):
        score += 0.05

    return round(min(1.0, max(0.0, score)), 4)
