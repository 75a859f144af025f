"""Read-only folds over reward history for user stats and the leaderboard."""

from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.core.service.auth.models.account import Account
from src.core.service.reward.models import (
    LeaderboardEntry,
    MedalBreakdown,
    RewardDirection,
    RewardHistoryEntry,
    RewardType,
)
from src.core.utils.clock import ensure_utc

RECENT_HISTORY_LIMIT = 10
NO_MEDAL = ("none", 0)


def fold_medal_stats(
    history: Iterable[RewardHistoryEntry],
    types_by_name: Optional[Dict[str, RewardType]] = None
) -> Dict[RewardDirection, Dict[str, MedalBreakdown]]:
    types_by_name = types_by_name or {}
    stats: Dict[RewardDirection, Dict[str, MedalBreakdown]] = {
        RewardDirection.GIVEN: {},
        RewardDirection.RECEIVED: {},
    }
    for entry in history:
        if not entry.medal_name:
            continue
        bucket = stats[RewardDirection(entry.direction)]
        breakdown = bucket.setdefault(
            entry.medal_name,
            MedalBreakdown(reward_type=types_by_name.get(entry.medal_name)),
        )
        breakdown.count += 1
        breakdown.total_value += entry.amount
    return stats


def recent_history(history: Iterable[RewardHistoryEntry], limit: int = RECENT_HISTORY_LIMIT) -> List[RewardHistoryEntry]:
    return sorted(history, key=lambda e: ensure_utc(e.created_at), reverse=True)[:limit]


def medal_counts(history: Iterable[RewardHistoryEntry], direction: RewardDirection) -> Dict[str, int]:
    counts = Counter(
        entry.medal_name for entry in history
        if entry.medal_name and RewardDirection(entry.direction) == direction
    )
    return dict(counts)


def most_frequent_medal(counts: Dict[str, int]) -> Tuple[str, int]:
    if not counts:
        return NO_MEDAL
    # Counter.most_common keeps insertion order on ties
    return Counter(counts).most_common(1)[0]


def build_leaderboard(
    candidates: Sequence[Tuple[Account, Sequence[RewardHistoryEntry]]],
    direction: RewardDirection,
    medal_filter: Optional[str],
    limit: int
) -> List[LeaderboardEntry]:
    """
    Rank accounts that have received anything by total received.
    With a medal filter, only accounts whose history mentions that medal
    are kept.
    """
    selected = []
    for account, history in candidates:
        if account.total_rewards_received <= 0:
            continue
        if medal_filter and not any(e.medal_name == medal_filter for e in history):
            continue
        selected.append((account, history))

    selected.sort(key=lambda pair: pair[0].total_rewards_received, reverse=True)

    entries = []
    for account, history in selected[:limit]:
        counts = medal_counts(history, direction)
        entries.append(
            LeaderboardEntry(
                account_id=account.id,
                username=account.username,
                avatar=account.avatar,
                total_rewards_received=account.total_rewards_received,
                total_rewards_given=account.total_rewards_given,
                medal_counts=counts,
                top_medal=most_frequent_medal(counts),
            )
        )
    return entries
