"""
Generation orchestration.

Sequences one caption generation through its phases:

    Idle -> QuotaChecking -> Routing -> Invoking -> Ranking -> Persisting -> Completed

with Failed reachable from any non-terminal phase.

Quota Policy:
1. A quota unit is taken before the provider is called
2. The unit stays consumed when the provider fails (no refunds)
3. History persistence is best effort and never fails a generation
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .errors import (
    Busy,
    GenerationFailed,
    LedgerError,
    LedgerUnavailable,
    OrchestrationError,
    QuotaExceeded,
)
from .plans import PLAN_POLICY, PlanPolicy, Subscription
from .quota import QuotaChecker, UsageSummary
from .ranking import CaptionVariant, rank
from .request import GenerationRequest
from .routing import (
    PROVIDER_COST_TABLE,
    ProviderChoice,
    ProviderCostTable,
    estimated_cost,
    select_provider,
)
from ..providers.base import ProviderAdapter, ProviderError
from ..storage.ledger import UsageLedger, billing_period_key
from ..storage.repository import HistoryStore

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_TIMEOUT = 30.0


class OrchestrationState(Enum):
    """Phases of a single generation."""
    IDLE = "idle"
    QUOTA_CHECKING = "quota_checking"
    ROUTING = "routing"
    INVOKING = "invoking"
    RANKING = "ranking"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


_NEXT_STATE: Dict[OrchestrationState, OrchestrationState] = {
    OrchestrationState.IDLE: OrchestrationState.QUOTA_CHECKING,
    OrchestrationState.QUOTA_CHECKING: OrchestrationState.ROUTING,
    OrchestrationState.ROUTING: OrchestrationState.INVOKING,
    OrchestrationState.INVOKING: OrchestrationState.RANKING,
    OrchestrationState.RANKING: OrchestrationState.PERSISTING,
    OrchestrationState.PERSISTING: OrchestrationState.COMPLETED,
}

TERMINAL_STATES = frozenset({OrchestrationState.COMPLETED, OrchestrationState.FAILED})


class InvalidTransitionError(RuntimeError):
    """Raised when a run is moved to a phase it cannot reach."""


class GenerationRun:
    """State machine for one submitted request."""

    def __init__(self, request: GenerationRequest, user_id: str):
        self.request = request
        self.user_id = user_id
        self.state = OrchestrationState.IDLE
        self.history: List[OrchestrationState] = [OrchestrationState.IDLE]
        self.error: Optional[BaseException] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, target: OrchestrationState) -> None:
        """Move to the next phase.

        Raises:
            InvalidTransitionError: If target is not reachable from the current phase
        """
        if self.is_terminal:
            raise InvalidTransitionError(f"Run already {self.state.value}")
        allowed = target == OrchestrationState.FAILED or _NEXT_STATE.get(self.state) == target
        if not allowed:
            raise InvalidTransitionError(
                f"Cannot move from {self.state.value} to {target.value}"
            )
        logger.debug(
            "Request %s: %s -> %s", self.request.request_id, self.state.value, target.value
        )
        self.state = target
        self.history.append(target)

    def fail(self, error: BaseException) -> None:
        self.error = error
        self.advance(OrchestrationState.FAILED)


@dataclass(frozen=True)
class GenerationResult:
    """Output of a successful generation. Variants are best first."""
    variants: Tuple[CaptionVariant, ...]
    request_id: str
    processing_time: float
    provider_used: ProviderChoice
    estimated_cost: float
    remaining_quota: int

    @property
    def best(self) -> CaptionVariant:
        return self.variants[0]


class SingleFlightGuard:
    """At most one in-flight generation per key.

    Advisory and in-memory only; nothing survives a restart.
    """

    def __init__(self):
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    def acquire(self, key: str) -> bool:
        """Claim the key. Returns False if it is already held."""
        with self._lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._in_flight.discard(key)

    def is_busy(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def clear(self) -> None:
        """Drop every guard, e.g. at shutdown."""
        with self._lock:
            self._in_flight.clear()


class GenerationOrchestrator:
    """Façade that turns a request into ranked captions under quota.

    All collaborators are injected; the orchestrator keeps no state
    between requests apart from its single-flight guard.
    """

    def __init__(
        self,
        ledger: UsageLedger,
        adapter: ProviderAdapter,
        history: HistoryStore,
        policy: PlanPolicy = PLAN_POLICY,
        cost_table: ProviderCostTable = PROVIDER_COST_TABLE,
        guard: Optional[SingleFlightGuard] = None,
        provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT,
        period_key: Callable[[], str] = billing_period_key,
        run_listener: Optional[Callable[[GenerationRun], None]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            ledger: Usage ledger that hands out quota units
            adapter: Provider capability used to generate captions
            history: Store that records the best variant of each generation
            policy: Plan limits
            cost_table: Per-provider unit costs for analytics
            guard: Single-flight guard; a private one is created when omitted
            provider_timeout: Seconds before a provider call counts as a transient failure
            period_key: Returns the current billing period key
            run_listener: Called with every finished run, successful or not

        Raises:
            ValueError: If provider_timeout is not positive
        """
        if provider_timeout <= 0:
            raise ValueError("provider_timeout must be > 0")
        self.quota = QuotaChecker(ledger, policy)
        self.adapter = adapter
        self.history = history
        self.cost_table = cost_table
        self.guard = guard or SingleFlightGuard()
        self.provider_timeout = provider_timeout
        self._period_key = period_key
        self._run_listener = run_listener

    def usage_summary(self, user_id: str, subscription: Subscription) -> UsageSummary:
        """Quota status for the current billing period."""
        return self.quota.summary(user_id, subscription, self._period_key())

    async def submit_generation(
        self,
        request: GenerationRequest,
        user_id: str,
        subscription: Subscription,
    ) -> GenerationResult:
        """Run one generation end to end.

        Args:
            request: Validated wizard selections
            user_id: Authenticated user identity
            subscription: The user's resolved subscription

        Returns:
            GenerationResult with variants best first

        Raises:
            Busy: A generation for this user is already in flight
            QuotaExceeded: No quota left this period; no provider call was made
            LedgerUnavailable: The ledger failed; nothing was consumed
            GenerationFailed: The provider failed, timed out or returned nothing
            asyncio.CancelledError: The caller cancelled; the run is marked failed
            UnknownPlanError: The subscription's plan is not configured
        """
        run = GenerationRun(request, user_id)

        if not self.guard.acquire(user_id):
            error = Busy(
                f"A generation is already in progress for user {user_id}",
                user_id=user_id,
                request_id=request.request_id,
                phase=run.state.value
            )
            run.fail(error)
            self._notify(run)
            raise error

        try:
            result = await self._execute(run, subscription)
        except asyncio.CancelledError as e:
            phase = run.state.value
            if not run.is_terminal:
                run.fail(e)
            logger.info(
                "generation-cancelled",
                extra={
                    "event": "generation-cancelled",
                    "user_id": user_id,
                    "request_id": request.request_id,
                    "phase": phase,
                }
            )
            raise
        except Exception as e:
            if not run.is_terminal:
                run.fail(e)
            if isinstance(e, OrchestrationError):
                logger.info(
                    "generation-failed",
                    extra={"event": "generation-failed", **e.context()}
                )
            raise
        finally:
            self.guard.release(user_id)
            self._notify(run)

        logger.info(
            "generation-completed",
            extra={
                "event": "generation-completed",
                "user_id": user_id,
                "request_id": request.request_id,
                "provider": result.provider_used.value,
                "processing_time": result.processing_time,
            }
        )
        return result

    async def _execute(self, run: GenerationRun, subscription: Subscription) -> GenerationResult:
        request = run.request
        user_id = run.user_id
        ctx = {"user_id": user_id, "request_id": request.request_id}

        # Quota
        run.advance(OrchestrationState.QUOTA_CHECKING)
        limit = self.quota.limit_for(subscription)
        period = self._period_key()
        try:
            grant = await asyncio.to_thread(
                self.quota.consume, user_id, subscription, period
            )
        except LedgerError as e:
            raise LedgerUnavailable(
                f"Usage ledger unavailable: {e}", phase=run.state.value, **ctx
            ) from e

        if not grant.granted:
            logger.info(
                "quota-exceeded",
                extra={"event": "quota-exceeded", "period": period, **ctx}
            )
            raise QuotaExceeded(
                plan=subscription.effective_plan.value,
                limit=limit,
                used=grant.used,
                phase=run.state.value,
                **ctx
            )

        # Routing
        run.advance(OrchestrationState.ROUTING)
        provider = select_provider(request)
        cost = estimated_cost(request, provider, self.cost_table)

        # Invoking
        run.advance(OrchestrationState.INVOKING)
        started = time.perf_counter()
        try:
            raw_candidates = await asyncio.wait_for(
                self.adapter.generate(provider, request.provider_fields()),
                timeout=self.provider_timeout
            )
        except asyncio.TimeoutError as e:
            raise GenerationFailed(
                f"Provider '{provider.value}' timed out after {self.provider_timeout}s",
                retryable=True,
                phase=run.state.value,
                **ctx
            ) from e
        except ProviderError as e:
            raise GenerationFailed(
                f"Provider '{provider.value}' failed: {e}",
                retryable=e.transient,
                phase=run.state.value,
                **ctx
            ) from e
        except Exception as e:
            raise GenerationFailed(
                f"Provider '{provider.value}' raised {type(e).__name__}: {e}",
                retryable=False,
                phase=run.state.value,
                **ctx
            ) from e
        processing_time = time.perf_counter() - started

        # Ranking
        run.advance(OrchestrationState.RANKING)
        variants = rank(raw_candidates, request)
        if not variants:
            raise GenerationFailed(
                f"Provider '{provider.value}' returned no captions",
                retryable=True,
                phase=run.state.value,
                **ctx
            )

        # Persisting
        run.advance(OrchestrationState.PERSISTING)
        try:
            await asyncio.to_thread(self.history.record, user_id, request, variants[0])
        except Exception:
            logger.warning(
                "history-write-failed",
                exc_info=True,
                extra={"event": "history-write-failed", "phase": run.state.value, **ctx}
            )

        run.advance(OrchestrationState.COMPLETED)
        return GenerationResult(
            variants=tuple(variants),
            request_id=request.request_id,
            processing_time=processing_time,
            provider_used=provider,
            estimated_cost=cost,
            remaining_quota=grant.remaining_after
        )

    def _notify(self, run: GenerationRun) -> None:
        if self._run_listener is not None:
            self._run_listener(run)
