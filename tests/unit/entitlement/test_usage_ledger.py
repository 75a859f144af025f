from datetime import datetime, timezone

from src.core.service.entitlement import usage_ledger
from src.core.service.entitlement.models import UsageLedger


def test_same_month_needs_no_reset():
    assert not usage_ledger.needs_monthly_reset(
        datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc),
        datetime(2024, 3, 31, 23, 59, tzinfo=timezone.utc),
    )


def test_year_boundary_triggers_reset():
    assert usage_ledger.needs_monthly_reset(
        datetime(2023, 12, 31, 23, 59, tzinfo=timezone.utc),
        datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc),
    )


def test_naive_timestamps_are_treated_as_utc():
    assert not usage_ledger.needs_monthly_reset(
        datetime(2024, 3, 2, 10, 0),
        datetime(2024, 3, 20, 10, 0, tzinfo=timezone.utc),
    )


def test_reset_is_idempotent_within_a_month():
    ledger = UsageLedger(prompts_this_month=5, last_reset=datetime(2024, 2, 10, tzinfo=timezone.utc))
    now = datetime(2024, 3, 10, tzinfo=timezone.utc)

    assert usage_ledger.reset_if_new_month(ledger, now) is True
    ledger.prompts_this_month = 1
    assert usage_ledger.reset_if_new_month(ledger, now) is False

    assert ledger.prompts_this_month == 1
    assert ledger.last_reset == now
