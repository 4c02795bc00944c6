"""
Subscription plans and quota policy.

Maps each plan to its monthly generation limit and feature list.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Plan(Enum):
    """Subscription plans."""
    FREE = "free"
    PREMIUM = "premium"
    PRO = "pro"


ACTIVE_STATUS = "active"


class UnknownPlanError(ValueError):
    """Raised when a plan outside the supported set reaches the policy."""


@dataclass(frozen=True)
class Subscription:
    """A user's subscription as resolved by the billing platform."""
    plan: Plan
    status: str = ACTIVE_STATUS
    renews_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS

    @property
    def effective_plan(self) -> Plan:
        """Plan used for quota; lapsed subscriptions fall back to free."""
        return self.plan if self.is_active else Plan.FREE


@dataclass(frozen=True)
class PlanTerms:
    """Limit and marketing copy for a single plan."""
    monthly_limit: int
    display_name: str
    features: Tuple[str, ...]

    def __post_init__(self):
        if self.monthly_limit <= 0:
            raise ValueError("monthly_limit must be > 0")


@dataclass(frozen=True)
class PlanPolicy:
    """Fixed lookup table of plan terms. No state, no defaults."""
    terms: Dict[Plan, PlanTerms]

    def get_terms(self, plan: Plan) -> PlanTerms:
        """Get terms for a plan.

        Raises:
            UnknownPlanError: If the plan is not in the table
        """
        if not isinstance(plan, Plan) or plan not in self.terms:
            raise UnknownPlanError(f"Unsupported plan: {plan!r}")
        return self.terms[plan]

    def limit_for(self, plan: Plan) -> int:
        return self.get_terms(plan).monthly_limit

    def features_for(self, plan: Plan) -> List[str]:
        return list(self.get_terms(plan).features)

    def display_name(self, plan: Plan) -> str:
        return self.get_terms(plan).display_name

    def with_limits(self, limits: Dict[Plan, int]) -> "PlanPolicy":
        """Return a copy with some monthly limits replaced."""
        terms = dict(self.terms)
        for plan, limit in limits.items():
            current = self.get_terms(plan)
            terms[plan] = PlanTerms(
                monthly_limit=limit,
                display_name=current.display_name,
                features=current.features
            )
        return PlanPolicy(terms)


PLAN_POLICY = PlanPolicy({
    Plan.FREE: PlanTerms(
        monthly_limit=10,
        display_name="Free",
        features=("10 generations/month", "Basic captions", "Standard hashtags")
    ),
    Plan.PREMIUM: PlanTerms(
        monthly_limit=100,
        display_name="Premium",
        features=(
            "100 generations/month",
            "Advanced captions",
            "Premium hashtags",
            "Alt text generation",
        )
    ),
    Plan.PRO: PlanTerms(
        monthly_limit=1000,
        display_name="Pro",
        features=(
            "1000 generations/month",
            "Premium captions",
            "Custom hashtags",
            "Advanced alt text",
            "Priority support",
        )
    ),
})


def parse_plan(value: str) -> Plan:
    """Parse a plan name.

    Raises:
        UnknownPlanError: If the name is not a supported plan
    """
    try:
        return Plan(str(value).strip().lower())
    except ValueError:
        valid = [p.value for p in Plan]
        raise UnknownPlanError(f"Unknown plan '{value}', must be one of: {valid}")
