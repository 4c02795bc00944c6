"""
Provider adapter contract.

Every backend that produces captions implements ProviderAdapter. The
orchestrator only ever talks to providers through this interface.
"""

from typing import List, Protocol, runtime_checkable

from ..core.request import ProviderFields
from ..core.routing import ProviderChoice


class ProviderError(Exception):
    """Raised by an adapter when generation fails.

    Transient errors (timeouts, rate limits, outages) may succeed on a
    later attempt; permanent ones will not.
    """

    def __init__(self, message: str, transient: bool):
        super().__init__(message)
        self.transient = transient


@runtime_checkable
class ProviderAdapter(Protocol):
    """Uniform contract every generation backend satisfies."""

    async def generate(self, provider: ProviderChoice, fields: ProviderFields) -> List[str]:
        """Return raw candidate captions in generation order.

        Raises:
            ProviderError: If the backend could not produce captions
        """
        ...
