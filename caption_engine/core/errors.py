"""
Error taxonomy for generation orchestration.

Every orchestration failure carries the user, request and phase it
happened in so that it can be logged without the media payload.
"""

from typing import Optional


class OrchestrationError(Exception):
    """Base class for errors returned to the caller of submit_generation."""

    retryable = False

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        phase: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id
        self.phase = phase

    def context(self) -> dict:
        """Structured fields for log records."""
        return {
            "user_id": self.user_id,
            "request_id": self.request_id,
            "phase": self.phase,
            "error": type(self).__name__,
        }


class QuotaExceeded(OrchestrationError):
    """The user has no quota left this billing period. Offer an upgrade."""

    def __init__(self, plan: str, limit: int, used: int, **kwargs):
        super().__init__(
            f"Monthly generation limit reached for plan '{plan}': {used}/{limit}",
            **kwargs
        )
        self.plan = plan
        self.limit = limit
        self.used = used


class LedgerUnavailable(OrchestrationError):
    """Entitlement could not be determined. Safe to retry the submission."""

    retryable = True


class GenerationFailed(OrchestrationError):
    """The provider did not produce usable captions."""

    def __init__(self, message: str, retryable: bool, **kwargs):
        super().__init__(message, **kwargs)
        self.retryable = retryable


class Busy(OrchestrationError):
    """Another generation for the same user is still in flight."""


class LedgerError(Exception):
    """Storage failure inside the usage ledger. Usage is left unchanged."""


class StorageError(Exception):
    """History store failure. Never fails a user-visible generation."""
