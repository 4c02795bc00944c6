"""
OpenAI-backed provider adapter.

Maps the heavy and light provider tiers onto two chat models and turns
OpenAI failures into transient or permanent ProviderErrors.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from ..core.request import ProviderFields
from ..core.routing import ProviderChoice
from .base import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_MODELS: Dict[ProviderChoice, str] = {
    ProviderChoice.HEAVY: "gpt-4o",
    ProviderChoice.LIGHT: "gpt-4o-mini",
}

CANDIDATE_COUNT = 3

SYSTEM_PROMPT = (
    "You write social media captions. "
    "Return JSON of the form {\"captions\": [\"...\"]} with exactly "
    f"{CANDIDATE_COUNT} distinct captions. Each caption matches the requested "
    "mood, tone, goal and platform, and may end with a few relevant hashtags."
)

# Errors worth retrying later
_TRANSIENT_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def build_messages(fields: ProviderFields) -> List[Dict[str, str]]:
    """Chat messages for one caption request."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": json.dumps(fields.as_dict())},
    ]


def parse_captions(content: Optional[str]) -> List[str]:
    """Extract the caption list from a model reply.

    Raises:
        ValueError: If the reply is not the expected JSON shape
    """
    if not content:
        raise ValueError("empty completion")
    payload = json.loads(content)
    captions = payload.get("captions") if isinstance(payload, dict) else None
    if not isinstance(captions, list) or not all(isinstance(c, str) for c in captions):
        raise ValueError("completion is missing a 'captions' string list")
    return captions


class OpenAIProviderAdapter:
    """Generates captions with OpenAI chat completions."""

    def __init__(
        self,
        models: Optional[Dict[ProviderChoice, str]] = None,
        client: Optional[Any] = None,
        temperature: float = 0.8,
    ):
        """Initialize the adapter.

        Args:
            models: Chat model per provider tier (defaults to gpt-4o / gpt-4o-mini)
            client: Preconfigured AsyncOpenAI client; one is created from
                the environment when omitted
            temperature: Sampling temperature

        Raises:
            ValueError: If a tier has no model configured
        """
        self.models = dict(DEFAULT_MODELS)
        self.models.update(models or {})
        for choice in ProviderChoice:
            if not self.models.get(choice):
                raise ValueError(f"model for provider '{choice.value}' is required")
        self.temperature = temperature
        self.client = client or AsyncOpenAI()

    async def generate(self, provider: ProviderChoice, fields: ProviderFields) -> List[str]:
        """Request candidate captions from the tier's model.

        Raises:
            ProviderError: transient for timeouts, connection failures,
                rate limits and server errors; permanent otherwise
        """
        model = self.models[provider]
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=build_messages(fields),
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except _TRANSIENT_ERRORS as e:
            raise ProviderError(f"{model} unavailable: {e}", transient=True) from e
        except openai.OpenAIError as e:
            raise ProviderError(f"{model} rejected the request: {e}", transient=False) from e

        if not response.choices:
            raise ProviderError(f"{model} returned no choices", transient=True)

        try:
            captions = parse_captions(response.choices[0].message.content)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            raise ProviderError(f"{model} returned unusable output: {e}", transient=False) from e

        logger.debug("Received %d captions from %s", len(captions), model)
        return captions
