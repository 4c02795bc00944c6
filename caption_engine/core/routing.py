"""
Provider routing and cost estimation.

Classifies each request as heavy or light work and prices it.

Routing Order (first match wins):
1. Video media - heavy
2. Media description longer than 50 characters - heavy
3. Educational goal - heavy
4. Anything else - light
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_UP
from enum import Enum
from typing import Dict

from .request import GenerationRequest, MediaType


class ProviderChoice(Enum):
    """Closed set of provider tiers."""
    HEAVY = "heavy"
    LIGHT = "light"


DESCRIPTION_LENGTH_THRESHOLD = 50
HEAVY_GOALS = frozenset({"educate"})


def select_provider(request: GenerationRequest) -> ProviderChoice:
    """Pick the provider tier for a request.

    Deterministic and side-effect free; evaluate it per request.
    """
    if request.media_type == MediaType.VIDEO:
        return ProviderChoice.HEAVY
    if len(request.media_description) > DESCRIPTION_LENGTH_THRESHOLD:
        return ProviderChoice.HEAVY
    if request.goal in HEAVY_GOALS:
        return ProviderChoice.HEAVY
    return ProviderChoice.LIGHT


@dataclass(frozen=True)
class ProviderCostTable:
    """Flat per-generation cost for each provider tier."""
    unit_costs: Dict[ProviderChoice, Decimal]

    def get_unit_cost(self, provider: ProviderChoice) -> Decimal:
        """Get the unit cost for a provider.

        Raises:
            ValueError: If provider is not priced
        """
        if provider not in self.unit_costs:
            raise ValueError(f"Unpriced provider: {provider}")
        return self.unit_costs[provider]


# Analytics only; costs never gate execution
PROVIDER_COST_TABLE = ProviderCostTable({
    ProviderChoice.HEAVY: Decimal("0.02"),
    ProviderChoice.LIGHT: Decimal("0.01"),
})


def estimated_cost(
    request: GenerationRequest,
    provider: ProviderChoice,
    table: ProviderCostTable = PROVIDER_COST_TABLE
) -> float:
    """Estimated cost in USD of serving a request with a provider.

    The request is accepted so that per-request pricing can be added
    without changing callers; today every generation costs the tier's
    unit price, rounded UP to 4 decimal places.
    """
    cost = table.get_unit_cost(provider)
    return float(cost.quantize(Decimal("0.0001"), rounding=ROUND_UP))
