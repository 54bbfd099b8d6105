"""
Ranking Engine - monthly economy rankings

Per active economy and period:
- videos submitted / approved / rejected and the approval rate
- distinct merchants featured in eligible approved videos
- new merchants (a link flagged is_new_merchant) vs returning merchants

Scores (RankingWeights defaults):
    video_score        = approved * (1 + approval_rate / 100)
    merchant_score     = merchants_total
    new_merchant_score = merchants_new * 2
    overall            = 0.4 * video + 0.3 * merchant + 0.3 * new_merchant

Ordering is deterministic: score descending, then earlier economy
created_at, then economy id. The same tie-break is used for the
secondary ranks, so recalculating unchanged data gives identical ranks.
"""
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from models.domain.economy import Economy
from models.domain.period import Period
from models.domain.ranking import EconomyMetrics, EconomyRanking, RankingWeights
from models.domain.video import VideoMerchantLink, VideoStatus, VideoSubmission
from services.duplicate_detection import filter_eligible
from services.errors import NotFoundError

logger = logging.getLogger(__name__)

# Economies without a creation date sort after every dated one
_NO_DATE = datetime.max.replace(tzinfo=timezone.utc)


def compute_metrics(
    economy: Economy,
    submissions: Iterable[VideoSubmission],
    links: Iterable[VideoMerchantLink],
    weights: RankingWeights = RankingWeights(),
) -> EconomyMetrics:
    """
    Aggregate one economy's period activity.

    Args:
        economy: The economy
        submissions: All of the economy's submissions for the period
        links: Merchant links (may include links of other videos)
        weights: Score weights
    """
    submissions = [s for s in submissions if s.economy_id == economy.id]
    eligible = filter_eligible(submissions)
    eligible_ids = {s.id for s in eligible}

    submitted = len(submissions)
    approved = len(eligible)
    rejected = sum(1 for s in submissions if s.status == VideoStatus.REJECTED)
    approval_rate = round(approved / submitted * 100, 2) if submitted else 0.0

    merchants = set()
    new_merchants = set()
    for link in links:
        if link.video_id not in eligible_ids:
            continue
        merchants.add(link.merchant_id)
        if link.is_new_merchant:
            new_merchants.add(link.merchant_id)

    merchants_total = len(merchants)
    merchants_new = len(new_merchants)

    video_score = approved * (1 + approval_rate / 100)
    merchant_score = float(merchants_total)
    new_merchant_score = merchants_new * weights.new_merchant_multiplier
    overall = (
        video_score * weights.video_weight
        + merchant_score * weights.merchant_weight
        + new_merchant_score * weights.new_merchant_weight
    )

    return EconomyMetrics(
        economy_id=economy.id,
        economy_name=economy.economy_name,
        economy_created_at=economy.created_at,
        videos_submitted=submitted,
        videos_approved=approved,
        videos_rejected=rejected,
        approval_rate=approval_rate,
        merchants_total=merchants_total,
        merchants_new=merchants_new,
        merchants_returning=merchants_total - merchants_new,
        video_score=video_score,
        merchant_score=merchant_score,
        new_merchant_score=new_merchant_score,
        overall_score=overall,
    )


def _tie_break(m: EconomyMetrics):
    created = m.economy_created_at or _NO_DATE
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created, m.economy_id


def _positions(metrics: List[EconomyMetrics], key: Callable[[EconomyMetrics], float]) -> Dict[str, int]:
    ordered = sorted(metrics, key=lambda m: (-key(m), _tie_break(m)))
    return {m.economy_id: idx + 1 for idx, m in enumerate(ordered)}


def rank_economies(metrics: List[EconomyMetrics]) -> List[EconomyRanking]:
    """Assign overall and secondary ranks, returned in overall rank order"""
    by_videos = _positions(metrics, lambda m: m.videos_approved)
    by_merchants = _positions(metrics, lambda m: m.merchants_total)
    by_new = _positions(metrics, lambda m: m.merchants_new)
    overall = _positions(metrics, lambda m: m.overall_score)

    rankings = [
        EconomyRanking(
            **vars(m),
            rank_by_videos=by_videos[m.economy_id],
            rank_by_merchants=by_merchants[m.economy_id],
            rank_by_new_merchants=by_new[m.economy_id],
            overall_rank=overall[m.economy_id],
        )
        for m in metrics
    ]
    rankings.sort(key=lambda r: r.overall_rank)
    return rankings


class RankingEngine:
    """Calculates, stores and reads monthly rankings"""

    def __init__(self, economy_repo, video_repo, ranking_repo, weights: Optional[RankingWeights] = None):
        self.economy_repo = economy_repo
        self.video_repo = video_repo
        self.ranking_repo = ranking_repo
        self.weights = weights or RankingWeights()

    async def calculate_rankings(self, period: Period) -> List[EconomyRanking]:
        economies = await self.economy_repo.list_active()
        submissions = await self.video_repo.list_for_period(period.key)
        links = await self.video_repo.get_merchant_links([s.id for s in submissions])

        by_economy = defaultdict(list)
        for sub in submissions:
            by_economy[sub.economy_id].append(sub)
        links_by_video = defaultdict(list)
        for link in links:
            links_by_video[link.video_id].append(link)

        metrics = []
        for economy in economies:
            economy_subs = by_economy.get(economy.id, [])
            economy_links = [l for s in economy_subs for l in links_by_video.get(s.id, [])]
            metrics.append(compute_metrics(economy, economy_subs, economy_links, self.weights))

        rankings = rank_economies(metrics)
        logger.info(f"📊 Ranked {len(rankings)} economies for {period.key}")
        return rankings

    async def save_rankings(self, period: Period, rankings: List[EconomyRanking]) -> None:
        """Replace every stored ranking row for the period (one transaction)"""
        await self.ranking_repo.replace_period(period, rankings)
        logger.info(f"💾 Saved {len(rankings)} rankings for {period.key}")

    async def get_saved_rankings(self, period: Period) -> List[EconomyRanking]:
        rankings = await self.ranking_repo.get_for_period(period)
        if not rankings:
            raise NotFoundError(f"No rankings found for {period.label}")
        return rankings

    async def get_available_periods(self) -> List[Period]:
        return await self.ranking_repo.list_periods()
