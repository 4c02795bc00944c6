"""
Offline template provider.

Produces fixed, deterministic captions from the provider fields. Useful
for demos, local development and tests where no API key is available.
"""

from typing import Dict, List

from ..core.request import ProviderFields
from ..core.routing import ProviderChoice

MOOD_EMOJIS: Dict[str, str] = {
    "chill": "😌",
    "grateful": "🙏",
    "confident": "💪",
    "powerful": "⚡",
    "inspired": "✨",
}

GOAL_OPENERS: Dict[str, str] = {
    "inspire": "Feeling {mood} and ready to inspire",
    "promote": "Sharing something amazing with you",
    "entertain": "Here's something to brighten your day",
    "educate": "Learning and growing every day",
}

DEFAULT_EMOJI = "✨"
DEFAULT_OPENER = "Sharing this moment"

CLOSERS = (
    "✨ Ready to make an impact! #motivation #success",
    "🚀 Every step forward counts. Keep pushing! #progress #mindset",
    "💪 Embracing the journey with confidence! #resilience #goals",
)


def base_caption(fields: ProviderFields) -> str:
    emoji = MOOD_EMOJIS.get(fields.mood, DEFAULT_EMOJI)
    opener = GOAL_OPENERS.get(fields.goal, DEFAULT_OPENER).format(mood=fields.mood)
    return f"{emoji} {opener}"


class TemplateProviderAdapter:
    """Deterministic stand-in for a real provider.

    Records every call so tests can assert on what was requested.
    """

    def __init__(self):
        self.calls: List[tuple] = []

    async def generate(self, provider: ProviderChoice, fields: ProviderFields) -> List[str]:
        self.calls.append((provider, fields))
        base = base_caption(fields)
        return [f"{base} {closer}" for closer in CLOSERS]
