"""
Payment dispatch domain models

Each payment in a batch is a PaymentAttempt that moves through:

    PENDING -> SENT -> CONFIRMED
                    -> FAILED
    PENDING -> FAILED        (unresolvable address, insufficient balance)
    PENDING -> ALREADY_PAID  (completed ledger row already exists)

CONFIRMED, FAILED and ALREADY_PAID are terminal.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional


class PaymentState(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    ALREADY_PAID = "already_paid"


ALLOWED_TRANSITIONS: Dict[PaymentState, FrozenSet[PaymentState]] = {
    PaymentState.PENDING: frozenset({
        PaymentState.SENT,
        PaymentState.FAILED,
        PaymentState.ALREADY_PAID,
    }),
    PaymentState.SENT: frozenset({PaymentState.CONFIRMED, PaymentState.FAILED}),
    PaymentState.CONFIRMED: frozenset(),
    PaymentState.FAILED: frozenset(),
    PaymentState.ALREADY_PAID: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a payment attempt is moved along an edge that does not exist"""


class RecipientKind(str, Enum):
    INTRALEDGER = "intraledger"  # Blink username -> wallet id
    LN_ADDRESS = "ln_address"    # any other Lightning address


@dataclass(frozen=True)
class Recipient:
    """Routable identifier resolved from a stored payment address"""
    kind: RecipientKind
    identifier: str  # Blink username, or full Lightning address


@dataclass
class PaymentItem:
    """One requested payout"""
    economy_id: str
    address: str
    amount_sats: int
    economy_name: str = ""
    merchant_id: Optional[str] = None
    memo: Optional[str] = None


@dataclass
class PaymentAttempt:
    item: PaymentItem
    state: PaymentState = PaymentState.PENDING
    payment_hash: Optional[str] = None
    error: Optional[str] = None
    anomaly: Optional[str] = None
    disbursement_id: Optional[str] = None

    def transition(self, new_state: PaymentState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Payment for {self.item.economy_id} cannot move "
                f"{self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def fail(self, error: str) -> None:
        self.transition(PaymentState.FAILED)
        self.error = error

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.state]

    @property
    def success(self) -> bool:
        return self.state == PaymentState.CONFIRMED

    def to_dict(self) -> dict:
        return {
            'economyId': self.item.economy_id,
            'economyName': self.item.economy_name,
            'merchantId': self.item.merchant_id,
            'address': self.item.address,
            'amount': self.item.amount_sats,
            'state': self.state.value,
            'success': self.success,
            'alreadyPaid': self.state == PaymentState.ALREADY_PAID,
            'paymentHash': self.payment_hash,
            'error': self.error,
            'anomaly': self.anomaly,
        }


@dataclass
class BatchResult:
    funding_month: str
    funding_year: int
    attempts: List[PaymentAttempt] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for a in self.attempts if a.state == PaymentState.CONFIRMED)

    @property
    def failure_count(self) -> int:
        return sum(1 for a in self.attempts if a.state == PaymentState.FAILED)

    @property
    def already_paid_count(self) -> int:
        return sum(1 for a in self.attempts if a.state == PaymentState.ALREADY_PAID)

    @property
    def total_sent(self) -> int:
        return sum(a.item.amount_sats for a in self.attempts if a.state == PaymentState.CONFIRMED)

    @property
    def anomalies(self) -> List[str]:
        return [a.anomaly for a in self.attempts if a.anomaly]

    def summary(self) -> dict:
        return {
            'total': len(self.attempts),
            'successCount': self.success_count,
            'failureCount': self.failure_count,
            'alreadyPaidCount': self.already_paid_count,
            'totalSent': self.total_sent,
            'fundingMonth': self.funding_month,
            'fundingYear': self.funding_year,
            'anomalies': self.anomalies,
        }

    def to_dict(self) -> dict:
        return {
            'results': [a.to_dict() for a in self.attempts],
            'summary': self.summary(),
        }
