"""
Funding domain models - configuration, economy-level allocation and
merchant-level distribution
"""
from dataclasses import dataclass, field, asdict
from typing import List, Optional

from .period import Period


@dataclass(frozen=True)
class FundingConfig:
    """
    Funding pool configuration (all amounts in satoshis)

    Loaded once per calculation run (SettingsRepository.load_funding_config)
    and passed explicitly to the allocator.
    """
    base_amount: int = 100_000
    rank_bonus_enabled: bool = True
    rank_bonus_pool: int = 5_000_000
    performance_bonus_enabled: bool = True
    performance_bonus_pool: int = 4_900_000
    total_pool: Optional[int] = None  # reporting override only

    def __post_init__(self):
        for name in ('base_amount', 'rank_bonus_pool', 'performance_bonus_pool'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.total_pool is not None and self.total_pool < 0:
            raise ValueError("total_pool cannot be negative")

    def with_total_pool(self, total_pool: Optional[int]) -> 'FundingConfig':
        return FundingConfig(
            base_amount=self.base_amount,
            rank_bonus_enabled=self.rank_bonus_enabled,
            rank_bonus_pool=self.rank_bonus_pool,
            performance_bonus_enabled=self.performance_bonus_enabled,
            performance_bonus_pool=self.performance_bonus_pool,
            total_pool=total_pool,
        )

    def to_dict(self) -> dict:
        return {
            'baseAmount': self.base_amount,
            'rankBonusEnabled': self.rank_bonus_enabled,
            'rankBonusPool': self.rank_bonus_pool,
            'performanceBonusEnabled': self.performance_bonus_enabled,
            'performanceBonusPool': self.performance_bonus_pool,
        }

    def configured_pool(self, economy_count: int) -> int:
        """Sum of the component pools for a run over economy_count economies."""
        total = self.base_amount * economy_count
        if self.rank_bonus_enabled:
            total += self.rank_bonus_pool
        if self.performance_bonus_enabled:
            total += self.performance_bonus_pool
        return total


@dataclass
class FundingAllocation:
    """Economy-level funding for one period"""
    economy_id: str
    economy_name: str
    lightning_address: Optional[str]
    overall_rank: int

    videos_approved: int = 0
    merchants_total: int = 0
    merchants_new: int = 0

    base_amount: int = 0
    rank_bonus: int = 0
    performance_bonus: int = 0
    total_funding: int = 0


@dataclass
class FundingPool:
    """Result of an allocation run"""
    period: Period
    total_pool: int
    total_allocated: int
    base_amount: int
    rank_bonus_pool: int
    performance_bonus_pool: int
    allocations: List[FundingAllocation] = field(default_factory=list)

    @property
    def undistributed(self) -> int:
        return max(0, self.total_pool - self.total_allocated)

    def to_dict(self) -> dict:
        return {
            'period': self.period.to_dict(),
            'totalPool': self.total_pool,
            'totalAllocated': self.total_allocated,
            'undistributed': self.undistributed,
            'baseAmount': self.base_amount,
            'rankBonusPool': self.rank_bonus_pool,
            'performanceBonusPool': self.performance_bonus_pool,
            'allocations': [asdict(a) for a in self.allocations],
        }


@dataclass
class MerchantPayment:
    """One merchant payout produced by the merchant-level distributor"""
    merchant_id: str
    merchant_name: str
    local_name: Optional[str]
    lightning_address: str
    payment_provider: str
    economy_id: str
    economy_name: str
    amount_sats: int
    video_appearances: int = 0


@dataclass
class EconomyFundingBreakdown:
    economy_id: str
    economy_name: str
    overall_rank: int
    total_allocation: int
    verified_merchants: int = 0
    unverified_merchants: int = 0
    merchants_without_addresses: int = 0
    merchants_with_invalid_addresses: int = 0
    merchant_payments: List[MerchantPayment] = field(default_factory=list)
    unallocated_amount: int = 0
    rounding_remainder: int = 0


@dataclass
class MerchantFundingPool:
    period: Period
    total_pool: int
    total_distributed: int
    total_unallocated: int
    economy_breakdowns: List[EconomyFundingBreakdown] = field(default_factory=list)
    payment_records: List[MerchantPayment] = field(default_factory=list)

    @property
    def summary(self) -> dict:
        unverified = sum(e.unverified_merchants for e in self.economy_breakdowns)
        without = sum(e.merchants_without_addresses for e in self.economy_breakdowns)
        invalid = sum(e.merchants_with_invalid_addresses for e in self.economy_breakdowns)
        return {
            'totalMerchants': len(self.payment_records) + unverified + without + invalid,
            'merchantsWithVerifiedAddresses': len(self.payment_records),
            'merchantsWithUnverifiedAddresses': unverified,
            'merchantsWithoutAddresses': without,
            'merchantsWithInvalidAddresses': invalid,
        }

    def to_dict(self) -> dict:
        return {
            'period': self.period.to_dict(),
            'totalPool': self.total_pool,
            'totalDistributed': self.total_distributed,
            'totalUnallocated': self.total_unallocated,
            'economyBreakdowns': [asdict(e) for e in self.economy_breakdowns],
            'paymentRecords': [asdict(p) for p in self.payment_records],
            'summary': self.summary,
        }
