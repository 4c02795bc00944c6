"""
Quota checks.

Combines the plan policy with the usage ledger to answer "may this user
generate?" and to take a quota unit when they may.
"""

from dataclasses import dataclass

from .plans import PLAN_POLICY, Plan, PlanPolicy, Subscription
from ..storage.ledger import ConsumeResult, UsageLedger


@dataclass(frozen=True)
class UsageSummary:
    """Read-only view of a user's quota for one billing period."""
    plan: Plan
    period_key: str
    limit: int
    used: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    @property
    def usage_fraction(self) -> float:
        return self.used / self.limit

    @property
    def can_generate(self) -> bool:
        return self.used < self.limit

    @property
    def should_offer_upgrade(self) -> bool:
        return not self.can_generate


class QuotaChecker:
    """Entitlement checks against a plan policy and a usage ledger."""

    def __init__(self, ledger: UsageLedger, policy: PlanPolicy = PLAN_POLICY):
        self.ledger = ledger
        self.policy = policy

    def limit_for(self, subscription: Subscription) -> int:
        """Monthly limit for the subscription's effective plan.

        Raises:
            UnknownPlanError: If the plan is not in the policy
        """
        return self.policy.limit_for(subscription.effective_plan)

    def summary(self, user_id: str, subscription: Subscription, period_key: str) -> UsageSummary:
        """Current usage for display. Does not consume anything."""
        limit = self.limit_for(subscription)
        return UsageSummary(
            plan=subscription.effective_plan,
            period_key=period_key,
            limit=limit,
            used=self.ledger.current_usage(user_id, period_key)
        )

    def consume(self, user_id: str, subscription: Subscription, period_key: str) -> ConsumeResult:
        """Take one quota unit if the user has any left.

        Raises:
            UnknownPlanError: If the plan is not in the policy
            LedgerError: If the ledger could not be read or written
        """
        limit = self.limit_for(subscription)
        return self.ledger.try_consume(user_id, period_key, limit)
