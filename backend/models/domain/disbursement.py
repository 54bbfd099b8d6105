"""
Funding disbursement domain model - one row of the payment ledger
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class DisbursementStatus(str, Enum):
    """Closed set of ledger statuses"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    LIGHTNING = "lightning"
    MANUAL = "manual"


@dataclass
class FundingDisbursement:
    """
    One recorded payment attempt

    Storage: PostgreSQL (funding_disbursements table)

    The ledger is append-only per attempt: a retried payment creates a new
    row instead of rewriting the failed one. merchant_id is set for
    merchant-level payouts and NULL for economy-level ones.
    """
    economy_id: str
    amount_sats: int
    funding_month: str  # "YYYY-MM"
    funding_year: int
    status: DisbursementStatus
    initiated_by: str
    payment_method: PaymentMethod = PaymentMethod.LIGHTNING

    id: Optional[str] = None
    merchant_id: Optional[str] = None
    recipient_address: Optional[str] = None
    videos_approved: Optional[int] = None
    merchants_involved: Optional[int] = None
    new_merchants: Optional[int] = None

    error_message: Optional[str] = None
    payment_hash: Optional[str] = None

    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'economyId': self.economy_id,
            'merchantId': self.merchant_id,
            'amountSats': self.amount_sats,
            'fundingMonth': self.funding_month,
            'fundingYear': self.funding_year,
            'status': self.status.value,
            'paymentMethod': self.payment_method.value,
            'recipientAddress': self.recipient_address,
            'errorMessage': self.error_message,
            'paymentHash': self.payment_hash,
            'initiatedBy': self.initiated_by,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'processedAt': self.processed_at.isoformat() if self.processed_at else None,
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class DisbursementStats:
    """Aggregates over a filtered slice of the ledger"""
    total: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    superseded: int = 0
    total_amount: int = 0
    paid_amount: int = 0

    def to_dict(self) -> dict:
        return {
            'total': self.total,
            'completed': self.completed,
            'failed': self.failed,
            'pending': self.pending,
            'superseded': self.superseded,
            'totalAmount': self.total_amount,
            'paidAmount': self.paid_amount,
        }


@dataclass(frozen=True)
class DisbursementFilter:
    """Filters shared by the history listing, count and stats queries"""
    funding_month: Optional[str] = None
    status: Optional[DisbursementStatus] = None
    economy_id: Optional[str] = None
