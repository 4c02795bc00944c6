"""
Shared fixtures for Caption Engine tests.
"""

import pytest

from caption_engine.core.plans import Plan, Subscription
from caption_engine.core.request import GenerationRequest, MediaType


def build_request(**overrides) -> GenerationRequest:
    """A valid request for a free-plan photo post; override any field."""
    fields = {
        "mood": "confident",
        "media_description": "beach sunset",
        "goal": "promote",
        "tone": "bold",
        "platform": "instagram",
        "media_type": MediaType.PHOTO,
    }
    fields.update(overrides)
    return GenerationRequest(**fields)


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def free_subscription():
    return Subscription(plan=Plan.FREE, status="active")
