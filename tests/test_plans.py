"""
Tests for plan policy and subscriptions.
"""
import pytest

from caption_engine.core.plans import (
    PLAN_POLICY,
    Plan,
    PlanPolicy,
    PlanTerms,
    Subscription,
    UnknownPlanError,
    parse_plan,
)


class TestPlanPolicy:
    """Test the plan lookup table."""

    @pytest.mark.parametrize("plan,limit", [
        (Plan.FREE, 10),
        (Plan.PREMIUM, 100),
        (Plan.PRO, 1000),
    ])
    def test_monthly_limits(self, plan, limit):
        """Each plan maps to its fixed monthly limit."""
        assert PLAN_POLICY.limit_for(plan) == limit

    def test_unknown_plan_fails_fast(self):
        """Plans outside the closed set are configuration errors, not zero quota."""
        with pytest.raises(UnknownPlanError):
            PLAN_POLICY.limit_for("gold")

    def test_policy_missing_plan(self):
        """A policy without a plan's terms rejects that plan."""
        policy = PlanPolicy({Plan.FREE: PLAN_POLICY.get_terms(Plan.FREE)})
        with pytest.raises(UnknownPlanError, match="Unsupported plan"):
            policy.limit_for(Plan.PRO)

    def test_features_and_display_name(self):
        """Plans expose their marketing copy."""
        assert PLAN_POLICY.display_name(Plan.PREMIUM) == "Premium"
        assert "100 generations/month" in PLAN_POLICY.features_for(Plan.PREMIUM)
        assert "Priority support" in PLAN_POLICY.features_for(Plan.PRO)

    def test_with_limits_overrides_only_given_plans(self):
        """Overrides replace limits but keep the other plans untouched."""
        policy = PLAN_POLICY.with_limits({Plan.FREE: 3})
        assert policy.limit_for(Plan.FREE) == 3
        assert policy.limit_for(Plan.PREMIUM) == 100
        assert policy.features_for(Plan.FREE) == PLAN_POLICY.features_for(Plan.FREE)
        assert PLAN_POLICY.limit_for(Plan.FREE) == 10

    def test_terms_reject_non_positive_limit(self):
        with pytest.raises(ValueError, match="monthly_limit must be > 0"):
            PlanTerms(monthly_limit=0, display_name="Broken", features=())


class TestSubscription:
    """Test subscription status handling."""

    def test_active_subscription_uses_its_plan(self):
        subscription = Subscription(plan=Plan.PRO, status="active")
        assert subscription.is_active
        assert subscription.effective_plan == Plan.PRO

    def test_lapsed_subscription_falls_back_to_free(self):
        subscription = Subscription(plan=Plan.PRO, status="expired")
        assert not subscription.is_active
        assert subscription.effective_plan == Plan.FREE


class TestParsePlan:
    """Test plan name parsing."""

    def test_case_insensitive(self):
        assert parse_plan(" Premium ") == Plan.PREMIUM

    def test_unknown_name(self):
        with pytest.raises(UnknownPlanError, match="Unknown plan"):
            parse_plan("enterprise")
