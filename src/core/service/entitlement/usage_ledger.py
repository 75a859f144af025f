"""Monthly reset rule for the embedded usage ledger."""

from datetime import datetime

from src.core.service.entitlement.models import UsageLedger
from src.core.utils.clock import ensure_utc


def needs_monthly_reset(last_reset: datetime, now: datetime) -> bool:
    last_reset = ensure_utc(last_reset)
    now = ensure_utc(now)
    return (last_reset.year, last_reset.month) != (now.year, now.month)


def reset_if_new_month(ledger: UsageLedger, now: datetime) -> bool:
    """
    Zero the monthly counters when `now` falls in a different calendar month
    than the last reset. Lifetime prompt count and storage are untouched.

    Returns True when a reset was applied.
    """
    if not needs_monthly_reset(ledger.last_reset, now):
        return False

    ledger.prompts_this_month = 0
    ledger.images_uploaded = 0
    ledger.api_calls = 0
    ledger.last_reset = ensure_utc(now)
    return True
