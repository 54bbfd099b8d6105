"""
Funding Allocator - economy-level split of the monthly pool

Eligible economies are the ranked economies with at least one approved
video. Each receives:

- base amount: flat, rank-independent
- rank bonus: integer share of the rank pool weighted by
  (sum_of_ranks - rank + 1), so rank 1 gets the largest share
- performance bonus: integer share of the performance pool proportional
  to new merchants; nothing is paid when no economy found a new merchant

All components are floored to whole sats, so the allocated total never
exceeds the configured pool. Flooring dust and an unspent performance
pool stay undistributed.
"""
import logging
from typing import Dict, List, Optional

from models.domain.disbursement import DisbursementStatus, FundingDisbursement, PaymentMethod
from models.domain.funding import FundingAllocation, FundingConfig, FundingPool
from models.domain.payment import PaymentItem
from models.domain.period import Period
from models.domain.ranking import EconomyRanking
from services.errors import NotFoundError

logger = logging.getLogger(__name__)


def allocate(
    rankings: List[EconomyRanking],
    config: FundingConfig,
    period: Period,
    lightning_addresses: Optional[Dict[str, str]] = None,
) -> FundingPool:
    """
    Split the pool across ranked economies.

    Args:
        rankings: Saved rankings for the period
        config: Funding configuration for this run
        period: Funding period
        lightning_addresses: economy_id -> payout address

    Returns:
        FundingPool with allocations ordered by overall rank
    """
    lightning_addresses = lightning_addresses or {}
    eligible = sorted(
        (r for r in rankings if r.videos_approved > 0),
        key=lambda r: (r.overall_rank, r.economy_id),
    )

    rank_weights = {}
    if config.rank_bonus_enabled and eligible:
        sum_of_ranks = sum(r.overall_rank for r in eligible)
        rank_weights = {r.economy_id: sum_of_ranks - r.overall_rank + 1 for r in eligible}
    total_rank_weight = sum(rank_weights.values())

    total_new = sum(r.merchants_new for r in eligible) if config.performance_bonus_enabled else 0

    allocations = []
    for r in eligible:
        rank_bonus = 0
        if total_rank_weight > 0:
            rank_bonus = config.rank_bonus_pool * rank_weights[r.economy_id] // total_rank_weight

        performance_bonus = 0
        if total_new > 0:
            performance_bonus = config.performance_bonus_pool * r.merchants_new // total_new

        allocations.append(FundingAllocation(
            economy_id=r.economy_id,
            economy_name=r.economy_name,
            lightning_address=lightning_addresses.get(r.economy_id),
            overall_rank=r.overall_rank,
            videos_approved=r.videos_approved,
            merchants_total=r.merchants_total,
            merchants_new=r.merchants_new,
            base_amount=config.base_amount,
            rank_bonus=rank_bonus,
            performance_bonus=performance_bonus,
            total_funding=config.base_amount + rank_bonus + performance_bonus,
        ))

    total_pool = config.total_pool
    if total_pool is None:
        total_pool = config.configured_pool(len(eligible))

    return FundingPool(
        period=period,
        total_pool=total_pool,
        total_allocated=sum(a.total_funding for a in allocations),
        base_amount=config.base_amount,
        rank_bonus_pool=config.rank_bonus_pool if config.rank_bonus_enabled else 0,
        performance_bonus_pool=config.performance_bonus_pool if config.performance_bonus_enabled else 0,
        allocations=allocations,
    )


def generate_payment_records(pool: FundingPool, period: Period) -> List[PaymentItem]:
    """Economy-level payouts for allocations that have a payout address"""
    return [
        PaymentItem(
            economy_id=a.economy_id,
            economy_name=a.economy_name,
            address=a.lightning_address,
            amount_sats=a.total_funding,
            memo=f"CBAF {period.month_name} {period.year} - Rank #{a.overall_rank}",
        )
        for a in pool.allocations
        if a.lightning_address and a.total_funding > 0
    ]


class FundingAllocator:
    """Reads saved rankings, allocates, and records pending disbursements"""

    def __init__(self, ranking_repo, economy_repo, disbursement_repo):
        self.ranking_repo = ranking_repo
        self.economy_repo = economy_repo
        self.disbursement_repo = disbursement_repo

    async def calculate_funding_allocation(self, period: Period, config: FundingConfig) -> FundingPool:
        """
        Raises:
            NotFoundError: If no rankings are saved for the period
        """
        rankings = await self.ranking_repo.get_for_period(period)
        if not rankings:
            raise NotFoundError(f"No rankings found for {period.label}")

        economies = await self.economy_repo.get_many([r.economy_id for r in rankings])
        addresses = {e.id: e.lightning_address for e in economies if e.lightning_address}

        pool = allocate(rankings, config, period, addresses)
        logger.info(
            f"💰 Allocated {pool.total_allocated} of {pool.total_pool} sats "
            f"across {len(pool.allocations)} economies for {period.key}"
        )
        return pool

    async def save_funding_disbursements(self, pool: FundingPool, period: Period, initiated_by: str) -> List[FundingDisbursement]:
        """Write one pending ledger row per allocation and store funding_earned on the rankings"""
        rows = [
            FundingDisbursement(
                economy_id=a.economy_id,
                amount_sats=a.total_funding,
                funding_month=period.key,
                funding_year=period.year,
                status=DisbursementStatus.PENDING,
                initiated_by=initiated_by,
                payment_method=PaymentMethod.LIGHTNING if a.lightning_address else PaymentMethod.MANUAL,
                recipient_address=a.lightning_address,
                videos_approved=a.videos_approved,
                merchants_involved=a.merchants_total,
                new_merchants=a.merchants_new,
            )
            for a in pool.allocations
        ]
        saved = await self.disbursement_repo.create_pending(rows)
        await self.ranking_repo.set_funding_earned(
            period, {a.economy_id: a.total_funding for a in pool.allocations}
        )
        logger.info(f"📝 Recorded {len(saved)} pending disbursements for {period.key}")
        return saved
