"""
Merchant-Level Distributor

Splits each economy's allocation evenly across the merchants featured in
its eligible approved videos for the period, paying only merchants whose
payout address is present, admin-verified and valid for its provider.

Whatever is not paid out (flooring remainder, or the whole allocation when
no merchant qualifies) is reported as unallocated, so for every run

    total_distributed + total_unallocated == total_pool
"""
import logging
from collections import Counter, defaultdict
from typing import Dict, Iterable, List

from models.domain.funding import (
    EconomyFundingBreakdown,
    FundingAllocation,
    MerchantFundingPool,
    MerchantPayment,
)
from models.domain.merchant import Merchant
from models.domain.payment import PaymentItem
from models.domain.period import Period
from models.domain.video import VideoMerchantLink, VideoSubmission
from services.address_validator import PaymentProvider, validate_address
from services.duplicate_detection import filter_eligible

logger = logging.getLogger(__name__)


def distribute(
    period: Period,
    allocations: List[FundingAllocation],
    submissions: Iterable[VideoSubmission],
    links: Iterable[VideoMerchantLink],
    merchants: Dict[str, Merchant],
) -> MerchantFundingPool:
    """
    Args:
        period: Funding period
        allocations: Economy-level allocations
        submissions: The period's submissions (any status)
        links: Merchant links for those submissions
        merchants: merchant_id -> Merchant
    """
    eligible = filter_eligible(submissions)
    video_economy = {s.id: s.economy_id for s in eligible}

    # economy_id -> merchant_id -> appearances in eligible videos
    appearances: Dict[str, Counter] = defaultdict(Counter)
    for link in links:
        economy_id = video_economy.get(link.video_id)
        if economy_id and link.merchant_id in merchants:
            appearances[economy_id][link.merchant_id] += 1

    breakdowns = []
    records = []
    for allocation in allocations:
        breakdown = _distribute_economy(allocation, appearances.get(allocation.economy_id, Counter()), merchants)
        breakdowns.append(breakdown)
        records.extend(breakdown.merchant_payments)

    total_pool = sum(a.total_funding for a in allocations)
    total_distributed = sum(p.amount_sats for p in records)
    total_unallocated = sum(b.unallocated_amount for b in breakdowns)

    logger.info(
        f"🏪 Merchant split for {period.key}: {total_distributed} sats to "
        f"{len(records)} merchants, {total_unallocated} unallocated"
    )
    return MerchantFundingPool(
        period=period,
        total_pool=total_pool,
        total_distributed=total_distributed,
        total_unallocated=total_unallocated,
        economy_breakdowns=breakdowns,
        payment_records=records,
    )


def _distribute_economy(
    allocation: FundingAllocation,
    appearances: Counter,
    merchants: Dict[str, Merchant],
) -> EconomyFundingBreakdown:
    breakdown = EconomyFundingBreakdown(
        economy_id=allocation.economy_id,
        economy_name=allocation.economy_name,
        overall_rank=allocation.overall_rank,
        total_allocation=allocation.total_funding,
    )

    featured = sorted(
        (merchants[mid] for mid in appearances),
        key=lambda m: (m.merchant_name.lower(), m.id),
    )

    qualifying = []
    for merchant in featured:
        if not merchant.has_address:
            breakdown.merchants_without_addresses += 1
            continue
        if not merchant.address_verified:
            breakdown.unverified_merchants += 1
            continue
        provider = merchant.payment_provider or PaymentProvider.OTHER.value
        result = validate_address(merchant.lightning_address, provider)
        if not result.valid:
            logger.warning(f"Skipping {merchant.merchant_name}: {result.error}")
            breakdown.merchants_with_invalid_addresses += 1
            continue
        qualifying.append((merchant, result))

    breakdown.verified_merchants = len(qualifying)
    if not qualifying:
        breakdown.unallocated_amount = allocation.total_funding
        return breakdown

    share = allocation.total_funding // len(qualifying)
    for merchant, result in qualifying:
        breakdown.merchant_payments.append(MerchantPayment(
            merchant_id=merchant.id,
            merchant_name=merchant.merchant_name,
            local_name=merchant.local_name,
            lightning_address=result.normalized_address,
            payment_provider=result.provider,
            economy_id=allocation.economy_id,
            economy_name=allocation.economy_name,
            amount_sats=share,
            video_appearances=appearances[merchant.id],
        ))

    distributed = share * len(qualifying)
    breakdown.rounding_remainder = allocation.total_funding - distributed
    breakdown.unallocated_amount = allocation.total_funding - distributed
    return breakdown


def merchant_payment_items(pool: MerchantFundingPool) -> List[PaymentItem]:
    """Payment records as dispatcher items (zero-sat shares are dropped)"""
    return [
        PaymentItem(
            economy_id=p.economy_id,
            economy_name=p.economy_name,
            merchant_id=p.merchant_id,
            address=p.lightning_address,
            amount_sats=p.amount_sats,
            memo=f"CBAF {pool.period.month_name} {pool.period.year} - Merchant Payment",
        )
        for p in pool.payment_records
        if p.amount_sats > 0
    ]


class MerchantDistributor:
    """Loads the period's videos and merchants and runs the split"""

    def __init__(self, video_repo, merchant_repo):
        self.video_repo = video_repo
        self.merchant_repo = merchant_repo

    async def calculate_merchant_funding(self, period: Period, allocations: List[FundingAllocation]) -> MerchantFundingPool:
        submissions = await self.video_repo.list_for_period(period.key)
        eligible = filter_eligible(submissions)
        links = await self.video_repo.get_merchant_links([s.id for s in eligible])
        merchants = await self.merchant_repo.get_many(sorted({l.merchant_id for l in links}))
        return distribute(period, allocations, eligible, links, {m.id: m for m in merchants})
