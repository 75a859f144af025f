from datetime import datetime, timedelta, timezone
from uuid import uuid4

from src.core.service.auth.models.account import Account
from src.core.service.reward import stats
from src.core.service.reward.models import RewardDirection, RewardHistoryEntry

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def account(username: str, received: int, given: int = 0) -> Account:
    return Account(
        id=uuid4(),
        username=username,
        email=f"{username}@example.com",
        total_rewards_received=received,
        total_rewards_given=given,
    )


def entry(owner: Account, medal: str, direction=RewardDirection.RECEIVED, amount=10, minutes_ago=0):
    return RewardHistoryEntry(
        account_id=owner.id,
        trend_id=uuid4(),
        medal_name=medal,
        amount=amount,
        direction=direction,
        created_at=NOW - timedelta(minutes=minutes_ago),
    )


def test_most_frequent_medal_defaults_to_none():
    assert stats.most_frequent_medal({}) == ("none", 0)


def test_most_frequent_medal_tie_keeps_first_seen():
    assert stats.most_frequent_medal({"silver": 2, "gold": 2, "bronze": 1}) == ("silver", 2)


def test_fold_medal_stats_splits_directions_and_skips_unnamed():
    alice = account("alice", received=0)
    history = [
        entry(alice, "gold", RewardDirection.GIVEN, amount=100),
        entry(alice, "gold", RewardDirection.GIVEN, amount=100),
        entry(alice, "silver", RewardDirection.RECEIVED, amount=50),
        entry(alice, None, RewardDirection.RECEIVED, amount=5),
    ]

    folded = stats.fold_medal_stats(history)

    assert folded[RewardDirection.GIVEN]["gold"].count == 2
    assert folded[RewardDirection.GIVEN]["gold"].total_value == 200
    assert list(folded[RewardDirection.RECEIVED]) == ["silver"]


def test_recent_history_newest_first_and_capped():
    alice = account("alice", received=0)
    history = [entry(alice, "bronze", minutes_ago=m) for m in range(15)]

    recent = stats.recent_history(history)

    assert len(recent) == stats.RECENT_HISTORY_LIMIT
    assert recent[0].created_at == NOW
    assert recent[-1].created_at == NOW - timedelta(minutes=9)


class TestLeaderboard:
    def setup_method(self):
        self.alice = account("alice", received=300, given=50)
        self.bob = account("bob", received=500)
        self.carol = account("carol", received=100)
        self.dave = account("dave", received=0, given=400)
        self.candidates = [
            (self.alice, [entry(self.alice, "gold"), entry(self.alice, "gold"), entry(self.alice, "silver")]),
            (self.bob, [entry(self.bob, "silver"), entry(self.bob, "bronze", RewardDirection.GIVEN)]),
            (self.carol, [entry(self.carol, "bronze")]),
            (self.dave, [entry(self.dave, "gold", RewardDirection.GIVEN)]),
        ]

    def test_ranks_by_received_and_excludes_non_recipients(self):
        board = stats.build_leaderboard(self.candidates, RewardDirection.RECEIVED, None, limit=10)

        assert [e.username for e in board] == ["bob", "alice", "carol"]
        assert board[1].medal_counts == {"gold": 2, "silver": 1}
        assert board[1].top_medal == ("gold", 2)

    def test_medal_filter_keeps_only_accounts_with_that_medal(self):
        board = stats.build_leaderboard(self.candidates, RewardDirection.RECEIVED, "bronze", limit=10)
        assert [e.username for e in board] == ["bob", "carol"]

    def test_direction_changes_counted_medals_not_ranking(self):
        board = stats.build_leaderboard(self.candidates, RewardDirection.GIVEN, None, limit=10)

        assert [e.username for e in board] == ["bob", "alice", "carol"]
        assert board[0].medal_counts == {"bronze": 1}
        assert board[1].top_medal == ("none", 0)

    def test_limit(self):
        board = stats.build_leaderboard(self.candidates, RewardDirection.RECEIVED, None, limit=1)
        assert [e.username for e in board] == ["bob"]
