from datetime import datetime, timedelta, timezone

import pytest

from src.core.exceptions.base import BadRequestError, EntitlementDenied, NotFoundError
from src.core.service.entitlement.entitlement_service import EntitlementService
from src.core.service.entitlement.models import AccountLevel, Currency, PlanTier, SubscriptionStatus
from src.core.service.subscription.subscription_service import SubscriptionService
from src.infra.repository.account_repository import AccountRepository
from src.infra.repository.community_repository import CommunityRepository


@pytest.fixture
def subscriptions(session, clock):
    return SubscriptionService(session, clock=clock)


@pytest.mark.asyncio
async def test_seeding_plans_is_idempotent(subscriptions, plans):
    await subscriptions.seed_plans()
    views = await subscriptions.list_active_plans(Currency.USD)
    assert [view.name for view in views] == [PlanTier.BASIC, PlanTier.STANDARD, PlanTier.PREMIUM]


@pytest.mark.asyncio
async def test_plans_priced_in_requested_currency(subscriptions, plans):
    views = {view.name: view for view in await subscriptions.list_active_plans(Currency.NGN)}

    standard = views[PlanTier.STANDARD]
    assert standard.currency == Currency.NGN
    assert standard.pricing.monthly == 14985
    assert standard.pricing.formatted["monthly"] == "₦149.85"
    assert views[PlanTier.BASIC].pricing.formatted["monthly"] == "₦0.00"


@pytest.mark.asyncio
async def test_free_trial_activation(session, subscriptions, clock, plans, make_account):
    account = await make_account(storage_used=4096)

    result = await subscriptions.activate_free_plan(account)

    assert result.plan == "Starter Plan"
    assert result.trial_ends == clock() + timedelta(days=30)
    assert all(feature.included for feature in result.features)

    refreshed = await AccountRepository(session).get_by_id(account.id)
    assert refreshed.subscription.status == SubscriptionStatus.TRIAL
    assert refreshed.subscription.plan_id == plans[PlanTier.BASIC].id
    assert refreshed.usage.storage_used == 4096

    with pytest.raises(BadRequestError):
        await subscriptions.activate_free_plan(refreshed)


@pytest.mark.asyncio
async def test_change_plan_respects_level_gate(subscriptions, plans, make_account):
    newbie = await make_account()

    with pytest.raises(EntitlementDenied) as exc_info:
        await subscriptions.change_plan(newbie.id, PlanTier.PREMIUM)
    assert "Required: Pro" in exc_info.value.message


@pytest.mark.asyncio
async def test_pro_account_upgrades_to_unlimited_premium(session, clock, subscriptions, plans, make_account):
    account = await make_account(
        level=AccountLevel.PRO,
        plan_tier=PlanTier.BASIC,
        prompts_this_month=20,
        usage_last_reset=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )
    entitlements = EntitlementService(session, clock)
    assert not (await entitlements.can_create_content(account)).allowed

    upgraded = await subscriptions.change_plan(account.id, PlanTier.PREMIUM)

    decision = await entitlements.can_create_content(upgraded)
    assert decision.allowed
    assert decision.remaining == "unlimited"


@pytest.mark.asyncio
async def test_upgrade_lifts_monthly_prompt_limit(session, clock, subscriptions, plans, make_account):
    account = await make_account(
        level=AccountLevel.CONTRIBUTOR,
        plan_tier=PlanTier.BASIC,
        prompts_this_month=20,
        usage_last_reset=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )
    entitlements = EntitlementService(session, clock)

    denied = await entitlements.can_create_content(account)
    assert not denied.allowed
    assert denied.reset_date == datetime(2024, 4, 1, tzinfo=timezone.utc)

    upgraded = await subscriptions.change_plan(account.id, PlanTier.STANDARD)
    assert upgraded.subscription.plan_id == plans[PlanTier.STANDARD].id
    assert upgraded.subscription.status == SubscriptionStatus.ACTIVE

    allowed = await entitlements.can_create_content(upgraded)
    assert allowed.allowed
    assert allowed.remaining == 80


@pytest.mark.asyncio
async def test_lazy_monthly_reset_is_persisted(session, clock, plans, make_account):
    account = await make_account(
        plan_tier=PlanTier.BASIC,
        prompts_created=20,
        prompts_this_month=20,
        usage_last_reset=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )
    clock.set(datetime(2024, 4, 2, 9, 0, tzinfo=timezone.utc))

    decision = await EntitlementService(session, clock).can_create_content(account)

    assert decision.allowed
    assert decision.remaining == 20
    stored = (await AccountRepository(session).get_by_id(account.id)).usage
    assert stored.prompts_this_month == 0
    assert stored.prompts_created == 20


@pytest.mark.asyncio
async def test_no_plan_denies_content(session, clock, plans, make_account):
    account = await make_account()
    entitlements = EntitlementService(session, clock)

    decision = await entitlements.can_create_content(account)
    assert not decision.allowed

    with pytest.raises(EntitlementDenied) as exc_info:
        await entitlements.require_create_content(account)
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_community_quota_counts_memberships(session, clock, plans, make_account):
    account = await make_account(plan_tier=PlanTier.BASIC)
    communities = CommunityRepository(session)
    for name in ("first", "second"):
        community = await communities.create(name, "desc", account.id, True, [])
        await communities.add_member(community.id, account.id)
    await session.commit()

    decision = await EntitlementService(session, clock).can_join_community(account)

    assert not decision.allowed
    assert decision.current_usage == 2


@pytest.mark.asyncio
async def test_cancel_subscription(session, subscriptions, plans, make_account):
    with pytest.raises(NotFoundError):
        await subscriptions.cancel_subscription(await make_account())

    subscribed = await make_account(plan_tier=PlanTier.BASIC)
    await subscriptions.cancel_subscription(subscribed)

    refreshed = await AccountRepository(session).get_by_id(subscribed.id)
    assert refreshed.subscription.plan_id is None
    assert refreshed.subscription.status == SubscriptionStatus.CANCELED


@pytest.mark.asyncio
async def test_cancel_and_reactivate_keeps_usage(session, clock, subscriptions, plans, make_account):
    account = await make_account(
        plan_tier=PlanTier.BASIC,
        prompts_this_month=20,
        storage_used=900 * 1024 * 1024,
        usage_last_reset=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )

    await subscriptions.cancel_subscription(account)
    canceled = await AccountRepository(session).get_by_id(account.id)
    await subscriptions.activate_free_plan(canceled)

    reactivated = await AccountRepository(session).get_by_id(account.id)
    assert reactivated.subscription.status == SubscriptionStatus.TRIAL
    assert reactivated.usage.prompts_this_month == 20
    assert reactivated.usage.storage_used == 900 * 1024 * 1024

    decision = await EntitlementService(session, clock).can_create_content(reactivated)
    assert not decision.allowed
    assert decision.current_usage == 20


@pytest.mark.asyncio
async def test_usage_summary(subscriptions, plans, make_account):
    account = await make_account(
        plan_tier=PlanTier.PREMIUM,
        level=AccountLevel.PRO,
        prompts_this_month=7,
        usage_last_reset=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )

    summary = await subscriptions.usage_summary(account)

    assert summary.plan == "Pro Plan"
    assert summary.usage.prompts_this_month == 7
    assert summary.usage.prompts_limit == "unlimited"
    assert summary.features.max_communities == "unlimited"
    assert summary.can_create_prompt.allowed
    assert summary.storage.limit == 5120 * 1024 * 1024
