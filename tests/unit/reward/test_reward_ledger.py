from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from src.core.service.reward import ledger
from src.core.service.reward.errors import (
    ContentNotFound,
    CooldownActive,
    DailyLimitReached,
    InsufficientPoints,
    InvalidRewardType,
    SelfRewardForbidden,
)
from src.core.service.reward.models import MedalSnapshot, MedalTier, Reward, RewardType

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)

GOLD = RewardType(
    id=uuid4(),
    name="gold",
    display_name="Gold Medal",
    tier=MedalTier.LEGENDARY,
    value=100,
    icon="🥇",
    description="Exceptional content",
    daily_limit=3,
    cooldown_minutes=60,
)
SILVER = RewardType(
    id=uuid4(),
    name="silver",
    display_name="Silver Medal",
    tier=MedalTier.EPIC,
    value=50,
    icon="🥈",
    description="High quality content",
    daily_limit=10,
    cooldown_minutes=30,
)

GIVER = uuid4()
AUTHOR = uuid4()
TREND = uuid4()


def reward(reward_type=GOLD, giver=GIVER, created_at=NOW, amount=None, medal_name=None, anonymous=False) -> Reward:
    medal = MedalSnapshot.of(reward_type)
    if medal_name:
        medal = medal.model_copy(update={"name": medal_name})
    return Reward(
        trend_id=TREND,
        giver_id=giver,
        reward_type_id=reward_type.id,
        amount=amount or reward_type.value,
        medal=medal,
        is_anonymous=anonymous,
        created_at=created_at,
    )


def validate(reward_type=GOLD, author=AUTHOR, trend_exists=True, todays=(), points=1000, now=NOW):
    return ledger.validate_reward(
        reward_type=reward_type,
        trend_author_id=author,
        trend_exists=trend_exists,
        giver_id=GIVER,
        todays_rewards=list(todays),
        giver_points=points,
        now=now,
    )


class TestValidateReward:
    def test_valid_reward_returns_type(self):
        assert validate() is GOLD

    def test_missing_or_inactive_type_is_checked_first(self):
        inactive = GOLD.model_copy(update={"is_active": False})
        with pytest.raises(InvalidRewardType):
            validate(reward_type=inactive, author=GIVER, trend_exists=False, points=0)
        with pytest.raises(InvalidRewardType):
            validate(reward_type=None)

    def test_missing_trend_before_self_reward(self):
        with pytest.raises(ContentNotFound) as exc_info:
            validate(author=GIVER, trend_exists=False)
        assert exc_info.value.status_code == 404

    def test_self_reward_rejected(self):
        with pytest.raises(SelfRewardForbidden):
            validate(author=GIVER, points=0)

    def test_daily_limit_before_cooldown(self):
        todays = [reward(created_at=NOW - timedelta(minutes=m)) for m in (200, 120, 1)]
        with pytest.raises(DailyLimitReached) as exc_info:
            validate(todays=todays)

        error = exc_info.value
        assert error.status_code == 429
        assert error.details == {"daily_limit": 3}
        assert error.retry_after == datetime(2024, 3, 16, tzinfo=timezone.utc)

    def test_cooldown_still_running(self):
        todays = [reward(created_at=NOW - timedelta(minutes=59))]
        with pytest.raises(CooldownActive) as exc_info:
            validate(todays=todays)

        error = exc_info.value
        assert error.details == {"minutes_left": 1}
        assert error.message == "Please wait 1 minutes before giving another Gold Medal"
        assert error.retry_after == NOW + timedelta(minutes=1)

    def test_cooldown_elapsed(self):
        todays = [reward(created_at=NOW - timedelta(minutes=61))]
        assert validate(todays=todays) is GOLD

    def test_cooldown_uses_latest_reward(self):
        todays = [
            reward(created_at=NOW - timedelta(minutes=10)),
            reward(created_at=NOW - timedelta(minutes=90)),
        ]
        with pytest.raises(CooldownActive) as exc_info:
            validate(todays=todays)
        assert exc_info.value.details == {"minutes_left": 50}

    def test_balance_checked_last(self):
        with pytest.raises(InsufficientPoints) as exc_info:
            validate(points=99)
        assert exc_info.value.details == {"required": 100, "available": 99}

    def test_exact_balance_is_enough(self):
        assert validate(points=100) is GOLD


def test_rewards_given_today_filters_by_day_giver_and_type():
    yesterday = NOW - timedelta(days=1)
    midnight = datetime(2024, 3, 15, tzinfo=timezone.utc)
    rewards = [
        reward(created_at=NOW - timedelta(hours=1)),
        reward(created_at=midnight),
        reward(created_at=yesterday),
        reward(giver=uuid4()),
        reward(reward_type=SILVER),
    ]

    todays = ledger.rewards_given_today(rewards, GIVER, GOLD.id, NOW)

    assert [r.created_at for r in todays] == [midnight, NOW - timedelta(hours=1)]


class TestAggregates:
    def test_summary_keys_are_lowercase_with_other_bucket(self):
        rewards = [
            reward(),
            reward(medal_name="Gold"),
            reward(reward_type=SILVER),
            reward(medal_name="mythic"),
        ]

        aggregates = ledger.compute_trend_aggregates(rewards)

        assert aggregates.medal_summary == {
            "gold": 2,
            "silver": 1,
            "bronze": 0,
            "platinum": 0,
            "diamond": 0,
            "other": 1,
        }
        assert aggregates.total_reward_value == 350
        assert aggregates.reward_count == 4

    def test_empty_trend(self):
        aggregates = ledger.compute_trend_aggregates([])
        assert aggregates.total_reward_value == 0
        assert aggregates.top_rewards == []
        assert aggregates.featured_medals == []
        assert set(aggregates.medal_summary.values()) == {0}

    def test_top_givers_ranked_by_cumulative_amount(self):
        givers = [uuid4() for _ in range(6)]
        rewards = [
            reward(reward_type=SILVER, giver=givers[0]),
            reward(reward_type=SILVER, giver=givers[0]),
            reward(reward_type=SILVER, giver=givers[0]),
            reward(giver=givers[1], amount=120),
            reward(giver=givers[2], amount=110),
            reward(reward_type=SILVER, giver=givers[3], amount=60),
            reward(reward_type=SILVER, giver=givers[4], amount=55),
            reward(reward_type=SILVER, giver=givers[5], amount=51),
        ]

        top = ledger.compute_trend_aggregates(rewards).top_rewards

        assert len(top) == ledger.TOP_REWARDS_LIMIT
        assert [t.giver_id for t in top] == givers[:5]
        assert top[0].amount == 150
        assert top[0].medal == "silver"
        assert top[1].medal == "gold"

    def test_top_givers_withhold_anonymous_only_givers(self):
        shy, mixed = uuid4(), uuid4()
        rewards = [
            reward(giver=shy, anonymous=True),
            reward(reward_type=SILVER, giver=mixed, anonymous=True),
            reward(reward_type=SILVER, giver=mixed),
        ]

        top = ledger.compute_trend_aggregates(rewards).top_rewards

        assert [(t.giver_id, t.is_anonymous) for t in top] == [(None, True), (mixed, False)]
        assert top[0].amount == 100

    def test_featured_medals_top_three_by_count(self):
        bronze = SILVER.model_copy(update={"id": uuid4(), "name": "bronze", "value": 25})
        diamond = SILVER.model_copy(update={"id": uuid4(), "name": "diamond", "value": 75})
        latest = NOW + timedelta(minutes=5)
        rewards = (
            [reward(reward_type=SILVER, created_at=NOW) for _ in range(3)]
            + [reward(reward_type=SILVER, created_at=latest)]
            + [reward(reward_type=bronze) for _ in range(2)]
            + [reward() for _ in range(2)]
            + [reward(reward_type=diamond)]
        )

        featured = ledger.compute_trend_aggregates(rewards).featured_medals

        assert len(featured) == ledger.FEATURED_MEDALS_LIMIT
        assert featured[0].reward_type_id == SILVER.id
        assert featured[0].count == 4
        assert featured[0].last_given == latest
        assert {f.reward_type_id for f in featured[1:]} == {bronze.id, GOLD.id}
        assert diamond.id not in {f.reward_type_id for f in featured}


def test_medal_breakdown_by_name():
    rewards = [reward(), reward(), reward(reward_type=SILVER)]
    breakdown = ledger.medal_breakdown(rewards, {GOLD.id: GOLD, SILVER.id: SILVER})

    assert breakdown["gold"].count == 2
    assert breakdown["gold"].total_value == 200
    assert breakdown["gold"].reward_type == GOLD
    assert breakdown["silver"].total_value == 50
