"""
Ranking domain models

EconomyMetrics is the raw per-economy aggregate for a period;
EconomyRanking adds the rank positions produced by the ranking engine.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class RankingWeights:
    """
    Score weights for the composite economy score.

    overall = video * video_weight
            + merchant * merchant_weight
            + new_merchant * new_merchant_weight

    where new_merchant = merchants_new * new_merchant_multiplier and
    video = approved * (1 + approval_rate / 100).
    """
    video_weight: float = 0.4
    merchant_weight: float = 0.3
    new_merchant_weight: float = 0.3
    new_merchant_multiplier: float = 2.0


@dataclass
class EconomyMetrics:
    """Per-economy activity for one period"""
    economy_id: str
    economy_name: str
    economy_created_at: Optional[datetime] = None

    videos_submitted: int = 0
    videos_approved: int = 0
    videos_rejected: int = 0
    approval_rate: float = 0.0  # percent, 2 decimals

    merchants_total: int = 0
    merchants_new: int = 0
    merchants_returning: int = 0

    video_score: float = 0.0
    merchant_score: float = 0.0
    new_merchant_score: float = 0.0
    overall_score: float = 0.0


@dataclass
class EconomyRanking(EconomyMetrics):
    """Metrics plus rank positions (1 = best)"""
    rank_by_videos: int = 0
    rank_by_merchants: int = 0
    rank_by_new_merchants: int = 0
    overall_rank: int = 0
    funding_earned: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.economy_created_at:
            data['economy_created_at'] = self.economy_created_at.isoformat()
        return data
