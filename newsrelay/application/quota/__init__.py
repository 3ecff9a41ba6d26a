"""Per-identity quota tracking."""

from .tracker import (
    InMemoryQuotaTracker,
    QuotaCounter,
    QuotaLimits,
    QuotaTracker,
    exceeded_scope,
    new_counter,
    quota_error,
    roll_counter,
)

__all__ = [
    "InMemoryQuotaTracker",
    "QuotaCounter",
    "QuotaLimits",
    "QuotaTracker",
    "exceeded_scope",
    "new_counter",
    "quota_error",
    "roll_counter",
]
