"""
Data models for storage layer.

Defines the persisted usage counter and caption history rows.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class UsageCounter:
    """Generations used by one user in one billing period.

    Counts only ever grow; a new period gets a new row.
    """
    user_id: str
    period_key: str
    generations: int = 0

    def __post_init__(self):
        """Validate count is not negative."""
        if self.generations < 0:
            raise ValueError("generations cannot be negative")


@dataclass(frozen=True)
class CaptionRecord:
    """A caption saved to a user's history."""
    user_id: str
    request_id: str
    request: Dict[str, Any]
    variant: Dict[str, Any]
    created_at: datetime
