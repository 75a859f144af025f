"""Seeded medal catalog. Upserted by name on startup."""

from typing import List

from src.core.service.reward.models import MedalTier, RewardType

REWARD_TYPE_CATALOG: List[RewardType] = [
    RewardType(
        name="gold",
        display_name="Gold Medal",
        tier=MedalTier.LEGENDARY,
        value=100,
        color="#FFD700",
        icon="🥇",
        description="Exceptional content that stands out",
        daily_limit=3,
        cooldown_minutes=60,
    ),
    RewardType(
        name="platinum",
        display_name="Platinum Medal",
        tier=MedalTier.LEGENDARY,
        value=200,
        color="#E5E4E2",
        icon="💎",
        description="Once-in-a-lifetime amazing content",
        daily_limit=1,
        cooldown_minutes=1440,
    ),
    RewardType(
        name="silver",
        display_name="Silver Medal",
        tier=MedalTier.EPIC,
        value=50,
        color="#C0C0C0",
        icon="🥈",
        description="High quality and valuable content",
        daily_limit=10,
        cooldown_minutes=30,
    ),
    RewardType(
        name="diamond",
        display_name="Diamond Award",
        tier=MedalTier.EPIC,
        value=75,
        color="#B9F2FF",
        icon="🔷",
        description="Brilliant and insightful content",
        daily_limit=5,
        cooldown_minutes=120,
    ),
    RewardType(
        name="bronze",
        display_name="Bronze Medal",
        tier=MedalTier.RARE,
        value=25,
        color="#CD7F32",
        icon="🥉",
        description="Good effort and solid content",
        daily_limit=20,
        cooldown_minutes=15,
    ),
    RewardType(
        name="copper",
        display_name="Copper Star",
        tier=MedalTier.RARE,
        value=15,
        color="#B87333",
        icon="🔶",
        description="Appreciated contribution",
        daily_limit=30,
        cooldown_minutes=10,
    ),
    RewardType(
        name="applause",
        display_name="Round of Applause",
        tier=MedalTier.COMMON,
        value=5,
        color="#10B981",
        icon="👏",
        description="Well done!",
        daily_limit=50,
        cooldown_minutes=5,
    ),
    RewardType(
        name="thanks",
        display_name="Thank You",
        tier=MedalTier.COMMON,
        value=2,
        color="#3B82F6",
        icon="🙏",
        description="Simple appreciation",
        daily_limit=100,
        cooldown_minutes=2,
    ),
    RewardType(
        name="creative",
        display_name="Creative Spark",
        tier=MedalTier.COMMON,
        value=8,
        color="#8B5CF6",
        icon="✨",
        description="Creative and original thinking",
        daily_limit=25,
        cooldown_minutes=10,
    ),
    RewardType(
        name="helpful",
        display_name="Helpful Hand",
        tier=MedalTier.COMMON,
        value=6,
        color="#06B6D4",
        icon="🤝",
        description="Very helpful and informative",
        daily_limit=40,
        cooldown_minutes=8,
    ),
]
