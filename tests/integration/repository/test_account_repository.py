from datetime import datetime, timezone
from uuid import uuid4

import pytest

from src.infra.repository.account_repository import AccountRepository


@pytest.fixture
def accounts(session):
    return AccountRepository(session)


@pytest.mark.asyncio
async def test_lookup_by_login_accepts_email_or_username(accounts, make_account):
    account = await make_account(username="Grace")

    assert (await accounts.get_by_login("GRACE@example.com")).id == account.id
    assert (await accounts.get_by_login("Grace")).id == account.id
    assert await accounts.get_by_login("nobody") is None


@pytest.mark.asyncio
async def test_find_conflict_reports_field(accounts, make_account):
    await make_account(username="taken")

    assert await accounts.find_conflict("taken", "fresh@example.com") == "username"
    assert await accounts.find_conflict("fresh", "taken@example.com") == "email"
    assert await accounts.find_conflict("fresh", "fresh@example.com") is None


@pytest.mark.asyncio
async def test_find_conflict_reports_email_first(accounts, make_account):
    await make_account(username="first")
    await make_account(username="second")

    assert await accounts.find_conflict("first", "first@example.com") == "email"
    assert await accounts.find_conflict("first", "second@example.com") == "email"


@pytest.mark.asyncio
async def test_storage_release_never_goes_below_zero(accounts, make_account):
    account = await make_account()

    await accounts.record_image_uploaded(account.id, 1000)
    await accounts.record_image_uploaded(account.id, 500)
    usage = (await accounts.get_by_id(account.id)).usage
    assert usage.storage_used == 1500
    assert usage.images_uploaded == 2

    await accounts.release_image_storage(account.id, 5000)
    assert (await accounts.get_by_id(account.id)).usage.storage_used == 0


@pytest.mark.asyncio
async def test_monthly_reset_applies_once(accounts, make_account):
    account = await make_account(
        prompts_created=12,
        prompts_this_month=12,
        usage_last_reset=datetime(2024, 2, 10, tzinfo=timezone.utc),
    )
    now = datetime(2024, 3, 15, tzinfo=timezone.utc)

    assert await accounts.apply_monthly_reset(account.id, now) is True
    assert await accounts.apply_monthly_reset(account.id, now) is False

    usage = (await accounts.get_by_id(account.id)).usage
    assert usage.prompts_this_month == 0
    assert usage.prompts_created == 12
    assert usage.last_reset == now


@pytest.mark.asyncio
async def test_monthly_reset_skipped_within_month(accounts, make_account):
    account = await make_account(
        prompts_this_month=3,
        usage_last_reset=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )

    assert await accounts.apply_monthly_reset(account.id, datetime(2024, 3, 31, 23, tzinfo=timezone.utc)) is False
    assert (await accounts.get_by_id(account.id)).usage.prompts_this_month == 3


@pytest.mark.asyncio
async def test_debit_refuses_to_overdraw(accounts, make_account):
    account = await make_account(points=50)

    assert await accounts.debit_points(account.id, 100) is False
    assert (await accounts.get_by_id(account.id)).reward_points == 50

    assert await accounts.debit_points(account.id, 50) is True
    refreshed = await accounts.get_by_id(account.id)
    assert refreshed.reward_points == 0
    assert refreshed.total_rewards_given == 50


@pytest.mark.asyncio
async def test_credit_unknown_account(accounts):
    assert await accounts.credit_points(uuid4(), 10) is False


@pytest.mark.asyncio
async def test_profile_update_ignores_unknown_fields(accounts, make_account):
    account = await make_account()

    await accounts.update_profile(account.id, {"bio": "Prompt tinkerer", "reward_points": 10_000})

    refreshed = await accounts.get_by_id(account.id)
    assert refreshed.bio == "Prompt tinkerer"
    assert refreshed.reward_points == account.reward_points
