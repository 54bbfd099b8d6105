"""
Domain Models - Storage-agnostic data structures

These models represent the funding program's entities independent of the
storage layer. Services operate on these models, not raw database rows.

Architecture:
- Domain models are pure Python objects (dataclasses)
- Storage details (PostgreSQL) are abstracted via repositories
- Business logic operates on these models, not database rows

Funding pipeline:
  EconomyRanking -> FundingAllocation -> MerchantPayment -> PaymentAttempt
  -> FundingDisbursement (ledger)
"""

from .period import Period
from .economy import Economy
from .video import VideoStatus, VideoSubmission, VideoMerchantLink
from .merchant import Merchant
from .ranking import RankingWeights, EconomyMetrics, EconomyRanking
from .funding import (
    FundingConfig,
    FundingAllocation,
    FundingPool,
    MerchantPayment,
    EconomyFundingBreakdown,
    MerchantFundingPool,
)
from .disbursement import (
    DisbursementStatus,
    PaymentMethod,
    FundingDisbursement,
    DisbursementStats,
    DisbursementFilter,
)
from .payment import (
    PaymentState,
    PaymentItem,
    PaymentAttempt,
    BatchResult,
    Recipient,
    RecipientKind,
    InvalidTransitionError,
)

__all__ = [
    'Period',
    'Economy',
    'VideoStatus',
    'VideoSubmission',
    'VideoMerchantLink',
    'Merchant',
    'RankingWeights',
    'EconomyMetrics',
    'EconomyRanking',
    'FundingConfig',
    'FundingAllocation',
    'FundingPool',
    'MerchantPayment',
    'EconomyFundingBreakdown',
    'MerchantFundingPool',
    'DisbursementStatus',
    'PaymentMethod',
    'FundingDisbursement',
    'DisbursementStats',
    'DisbursementFilter',
    'PaymentState',
    'PaymentItem',
    'PaymentAttempt',
    'BatchResult',
    'Recipient',
    'RecipientKind',
    'InvalidTransitionError',
]
