from datetime import datetime, timezone
from uuid import uuid4

import pytest

from src.core.service.auth.models.account import Account
from src.core.service.entitlement import checker
from src.core.service.entitlement.catalog import PLAN_CATALOG
from src.core.service.entitlement.models import (
    AccountLevel,
    PlanTier,
    Quota,
    UNLIMITED,
    UsageLedger,
)

MB = 1024 * 1024
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)

PLANS = {plan.name: plan for plan in PLAN_CATALOG}
BASIC = PLANS[PlanTier.BASIC]
STANDARD = PLANS[PlanTier.STANDARD]
PREMIUM = PLANS[PlanTier.PREMIUM]


def account_with(**usage) -> Account:
    usage.setdefault("last_reset", datetime(2024, 3, 1, tzinfo=timezone.utc))
    return Account(
        id=uuid4(),
        username="tester",
        email="tester@example.com",
        usage=UsageLedger(**usage),
    )


class TestQuota:
    def test_sentinel_maps_to_unlimited(self):
        quota = Quota.from_raw(UNLIMITED)
        assert quota.is_unlimited
        assert quota.to_raw() == UNLIMITED
        assert not quota.exhausted(10 ** 9)
        assert quota.remaining(10 ** 9) == "unlimited"

    def test_limited_quota(self):
        quota = Quota.from_raw(20)
        assert not quota.exhausted(19)
        assert quota.exhausted(20)
        assert quota.remaining(15) == 5
        assert quota.remaining(25) == 0


class TestCanCreateContent:
    def test_denied_without_plan(self):
        decision = checker.can_create_content(account_with(), None, NOW)
        assert not decision.allowed
        assert decision.reason == checker.NO_PLAN_REASON

    def test_allowed_below_monthly_limit(self):
        decision = checker.can_create_content(account_with(prompts_this_month=19), BASIC, NOW)
        assert decision.allowed
        assert decision.remaining == 1
        assert decision.current_usage == 19

    def test_denied_at_monthly_limit_with_reset_date(self):
        decision = checker.can_create_content(account_with(prompts_this_month=20), BASIC, NOW)
        assert not decision.allowed
        assert "Monthly prompt limit reached (20)" in decision.reason
        assert decision.reset_date == datetime(2024, 4, 1, tzinfo=timezone.utc)

    def test_unlimited_plan_never_denies(self):
        decision = checker.can_create_content(account_with(prompts_this_month=50_000), PREMIUM, NOW)
        assert decision.allowed
        assert decision.remaining == "unlimited"

    def test_new_month_resets_monthly_counters_first(self):
        account = account_with(
            prompts_created=42,
            prompts_this_month=20,
            images_uploaded=7,
            api_calls=90,
            storage_used=3 * MB,
            last_reset=datetime(2024, 2, 28, 23, 59, tzinfo=timezone.utc),
        )

        decision = checker.can_create_content(account, BASIC, NOW)

        assert decision.allowed
        assert account.usage.prompts_this_month == 0
        assert account.usage.images_uploaded == 0
        assert account.usage.api_calls == 0
        # Lifetime and storage counters survive the reset
        assert account.usage.prompts_created == 42
        assert account.usage.storage_used == 3 * MB
        assert account.usage.last_reset == NOW


class TestCanUploadImage:
    def test_denied_when_storage_would_overflow(self):
        account = account_with(storage_used=100 * MB - 10)
        decision = checker.can_upload_image(account, BASIC, 11)
        assert not decision.allowed
        assert decision.reason == "Storage limit exceeded. 1MB remaining"
        assert decision.remaining_bytes == 10

    def test_filling_storage_exactly_is_allowed(self):
        account = account_with(storage_used=100 * MB - 10)
        decision = checker.can_upload_image(account, BASIC, 10)
        assert decision.allowed
        assert decision.remaining_bytes == 10

    def test_denied_without_plan(self):
        assert not checker.can_upload_image(account_with(), None, 1).allowed


class TestCommunitiesAndLevels:
    def test_join_denied_at_limit(self):
        decision = checker.can_join_community(BASIC, 2)
        assert not decision.allowed
        assert decision.reason == "Community limit reached (2)"

    def test_join_unlimited_on_premium(self):
        decision = checker.can_join_community(PREMIUM, 500)
        assert decision.allowed
        assert decision.remaining == "unlimited"

    @pytest.mark.parametrize(
        "level,plan,allowed",
        [
            (AccountLevel.NEWBIE, BASIC, True),
            (AccountLevel.NEWBIE, STANDARD, False),
            (AccountLevel.CONTRIBUTOR, STANDARD, True),
            (AccountLevel.CONTRIBUTOR, PREMIUM, False),
            (AccountLevel.EXPERT, PREMIUM, True),
        ],
    )
    def test_plan_level_gate(self, level, plan, allowed):
        assert checker.can_subscribe(level, plan).allowed is allowed

    @pytest.mark.parametrize(
        "account_level,required,meets",
        [
            (AccountLevel.PRO, AccountLevel.CONTRIBUTOR, True),
            (AccountLevel.EXPERT, AccountLevel.EXPERT, True),
            (AccountLevel.NEWBIE, AccountLevel.NEWBIE, True),
            (AccountLevel.CONTRIBUTOR, AccountLevel.PRO, False),
            (AccountLevel.PRO, AccountLevel.EXPERT, False),
            ("Expert", "Newbie", True),
        ],
    )
    def test_level_meets_uses_declared_order(self, account_level, required, meets):
        assert checker.level_meets(account_level, required) is meets

    def test_level_denial_names_both_levels(self):
        decision = checker.check_content_level(AccountLevel.NEWBIE, AccountLevel.PRO)
        assert not decision.allowed
        assert "(Newbie)" in decision.reason
        assert "Required: Pro" in decision.reason

    def test_private_content_flag(self):
        assert checker.can_create_private_content(BASIC)
        assert not checker.can_create_private_content(None)


class TestPromptAndImageLimits:
    def test_prompt_length_boundary(self):
        assert checker.check_prompt_length(BASIC, "x" * 1000).allowed
        denied = checker.check_prompt_length(BASIC, "x" * 1001)
        assert not denied.allowed
        assert "1000 characters" in denied.reason

    def test_too_many_images_on_one_prompt(self):
        decision = checker.check_image_constraints(BASIC, 1024, "png", existing_count=5)
        assert not decision.allowed
        assert "at most 5 images" in decision.reason

    def test_image_too_large(self):
        decision = checker.check_image_constraints(BASIC, 5 * MB + 1, "png", existing_count=0)
        assert not decision.allowed
        assert "5MB" in decision.reason

    def test_format_is_case_insensitive(self):
        assert checker.check_image_constraints(BASIC, 1024, ".PNG", existing_count=0).allowed

    def test_unknown_format_rejected(self):
        decision = checker.check_image_constraints(BASIC, 1024, "bmp", existing_count=0)
        assert not decision.allowed
        assert "'bmp'" in decision.reason


def test_storage_summary_formatting():
    summary = checker.storage_summary(account_with(storage_used=50 * MB), BASIC, default_limit_mb=100)
    assert summary.used == 50 * MB
    assert summary.limit == 100 * MB
    assert summary.used_percentage == "50.0"
    assert summary.formatted == {"used": "50.00MB", "limit": "100MB", "remaining": "50.00MB"}


def test_storage_summary_falls_back_to_default_limit():
    summary = checker.storage_summary(account_with(), None, default_limit_mb=100)
    assert summary.limit == 100 * MB
    assert summary.used_percentage == "0.0"
