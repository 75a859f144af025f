"""
Pure reward ledger rules.

Validation runs fail-fast in a fixed order and raises the matching
ServiceError subclass. Aggregates are always rebuilt from the full list of
rewards on a trend so they can never drift from it.
"""

import math
from collections import Counter, OrderedDict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from src.core.service.reward.errors import (
    ContentNotFound,
    CooldownActive,
    DailyLimitReached,
    InsufficientPoints,
    InvalidRewardType,
    SelfRewardForbidden,
)
from src.core.service.reward.models import (
    MEDAL_SUMMARY_KEYS,
    OTHER_MEDAL,
    FeaturedMedal,
    MedalBreakdown,
    Reward,
    RewardType,
    TopReward,
    TrendAggregates,
)
from src.core.utils.clock import ensure_utc, start_of_day, start_of_next_day

TOP_REWARDS_LIMIT = 5
FEATURED_MEDALS_LIMIT = 3


def rewards_given_today(
    rewards: Iterable[Reward],
    giver_id: UUID,
    reward_type_id: UUID,
    now: datetime
) -> List[Reward]:
    """Rewards of one type from one giver since UTC midnight, oldest first."""
    day_start = start_of_day(now)
    todays = [
        r for r in rewards
        if r.giver_id == giver_id
        and r.reward_type_id == reward_type_id
        and ensure_utc(r.created_at) >= day_start
    ]
    return sorted(todays, key=lambda r: ensure_utc(r.created_at))


def cooldown_deadline(last_given: datetime, cooldown_minutes: int) -> datetime:
    return ensure_utc(last_given) + timedelta(minutes=cooldown_minutes)


def validate_reward(
    reward_type: Optional[RewardType],
    trend_author_id: Optional[UUID],
    trend_exists: bool,
    giver_id: UUID,
    todays_rewards: Sequence[Reward],
    giver_points: int,
    now: datetime
) -> RewardType:
    """
    Check a give-reward request against every rule, in order:
    type active, trend exists, not self, daily limit, cooldown, balance.

    `todays_rewards` must already be narrowed to this giver, type and trend
    since UTC midnight (see rewards_given_today).
    Returns the validated reward type.
    """
    if reward_type is None or not reward_type.is_active:
        raise InvalidRewardType()

    if not trend_exists:
        raise ContentNotFound()

    if trend_author_id is not None and trend_author_id == giver_id:
        raise SelfRewardForbidden()

    now = ensure_utc(now)

    if reward_type.daily_limit is not None and len(todays_rewards) >= reward_type.daily_limit:
        raise DailyLimitReached(
            reward_type.display_name,
            reward_type.daily_limit,
            retry_after=start_of_next_day(now),
        )

    if reward_type.cooldown_minutes > 0 and todays_rewards:
        last = max(todays_rewards, key=lambda r: ensure_utc(r.created_at))
        deadline = cooldown_deadline(last.created_at, reward_type.cooldown_minutes)
        if now < deadline:
            minutes_left = math.ceil((deadline - now).total_seconds() / 60)
            raise CooldownActive(reward_type.display_name, minutes_left, retry_after=deadline)

    if giver_points < reward_type.value:
        raise InsufficientPoints(required=reward_type.value, available=giver_points)

    return reward_type


def medal_summary_key(medal_name: Optional[str]) -> str:
    name = (medal_name or "").lower()
    return name if name in MEDAL_SUMMARY_KEYS else OTHER_MEDAL


def empty_medal_summary() -> Dict[str, int]:
    return {key: 0 for key in (*MEDAL_SUMMARY_KEYS, OTHER_MEDAL)}


def top_givers(rewards: Sequence[Reward], limit: int = TOP_REWARDS_LIMIT) -> List[TopReward]:
    """Givers ranked by cumulative amount, each with their highest-value medal."""
    totals: "OrderedDict[UUID, int]" = OrderedDict()
    best: Dict[UUID, Reward] = {}
    named = set()
    for reward in rewards:
        totals[reward.giver_id] = totals.get(reward.giver_id, 0) + reward.amount
        current = best.get(reward.giver_id)
        if current is None or reward.amount > current.amount:
            best[reward.giver_id] = reward
        if not reward.is_anonymous:
            named.add(reward.giver_id)

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:limit]
    # One named reward is enough to show the giver
    return [
        TopReward(
            giver_id=giver_id if giver_id in named else None,
            amount=amount,
            medal=best[giver_id].medal.name,
            is_anonymous=giver_id not in named,
        )
        for giver_id, amount in ranked
    ]


def featured_medals(rewards: Sequence[Reward], limit: int = FEATURED_MEDALS_LIMIT) -> List[FeaturedMedal]:
    counts = Counter(r.reward_type_id for r in rewards)
    last_given: Dict[UUID, datetime] = {}
    for reward in rewards:
        created = ensure_utc(reward.created_at)
        if reward.reward_type_id not in last_given or created > last_given[reward.reward_type_id]:
            last_given[reward.reward_type_id] = created

    return [
        FeaturedMedal(reward_type_id=type_id, count=count, last_given=last_given.get(type_id))
        for type_id, count in counts.most_common(limit)
    ]


def compute_trend_aggregates(rewards: Sequence[Reward]) -> TrendAggregates:
    summary = empty_medal_summary()
    total = 0
    for reward in rewards:
        summary[medal_summary_key(reward.medal.name)] += 1
        total += reward.amount

    return TrendAggregates(
        medal_summary=summary,
        total_reward_value=total,
        reward_count=len(rewards),
        top_rewards=top_givers(rewards),
        featured_medals=featured_medals(rewards),
    )


def medal_breakdown(
    rewards: Sequence[Reward],
    types_by_id: Dict[UUID, RewardType]
) -> Dict[str, MedalBreakdown]:
    """Per-medal count and value for one trend, keyed by medal name."""
    breakdown: Dict[str, MedalBreakdown] = {}
    for reward in rewards:
        entry = breakdown.setdefault(
            reward.medal.name,
            MedalBreakdown(reward_type=types_by_id.get(reward.reward_type_id)),
        )
        entry.count += 1
        entry.total_value += reward.amount
    return breakdown
