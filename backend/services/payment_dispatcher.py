"""
Batch Payment Dispatcher

Pays a list of PaymentItems one at a time, in the order given. Every item
is a PaymentAttempt driven through its state machine (models.domain.payment)
and every attempt that reaches the payment API or fails locally gets a
ledger row before the next item starts.

Per item:
0. merchant-level items: the merchant must belong to the item's economy
   -> FAILED, no ledger row
1. ledger pre-check -> ALREADY_PAID when a completed row covers the
   recipient. An economy-level payment covers every merchant of that
   economy for the month, and any merchant payment blocks a later
   economy-level one.
2. resolve the address to a routable recipient -> FAILED if unresolvable
3. check the running wallet balance -> FAILED if insufficient
4. send (single attempt) -> CONFIRMED or FAILED with the upstream message
5. write the ledger row (and credit the economy on success)

A period lock is held for the whole run so two runs for the same funding
month cannot interleave.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from models.domain.disbursement import DisbursementStatus, FundingDisbursement, PaymentMethod
from models.domain.payment import (
    BatchResult,
    PaymentAttempt,
    PaymentItem,
    PaymentState,
    RecipientKind,
)
from models.domain.period import Period
from services.address_validator import resolve_recipient
from services.blink_client import BlinkClient
from services.errors import (
    ConfigurationError,
    LedgerWriteError,
    PaymentProviderError,
    ValidationError,
)

logger = logging.getLogger(__name__)

INVALID_ADDRESS_ERROR = "Invalid address format"
INSUFFICIENT_BALANCE_ERROR = "Insufficient wallet balance"
INVALID_AMOUNT_ERROR = "Amount must be a positive number of sats"
UNKNOWN_MERCHANT_ERROR = "Merchant does not belong to this economy"


def default_memo(funding_month: str) -> str:
    return f"CBAF Funding - {funding_month}"


class PaymentDispatcher:
    """Sequential Lightning payout runner"""

    def __init__(
        self,
        blink: BlinkClient,
        disbursement_repo,
        merchant_repo,
        wallet_id: Optional[str],
        delay_seconds: float = 0.2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.blink = blink
        self.ledger = disbursement_repo
        self.merchant_repo = merchant_repo
        self.wallet_id = wallet_id
        self.delay_seconds = delay_seconds
        self.sleep = sleep

    async def send_batch(
        self,
        items: List[PaymentItem],
        funding_month: str,
        funding_year: int,
        initiated_by: str,
        memo: Optional[str] = None,
    ) -> BatchResult:
        """
        Pay every item, strictly sequentially.

        Raises:
            ValidationError: Malformed funding month or year
            ConfigurationError: No funding wallet configured
            DisbursementInProgressError: Another run holds the month's lock
            PaymentProviderError: Wallet balance could not be read
            LedgerWriteError: A ledger row could not be written (run stops)
        """
        try:
            period = Period.from_key(funding_month)
        except ValueError as e:
            raise ValidationError(str(e))
        if period.year != funding_year:
            raise ValidationError(f"Funding year {funding_year} does not match month {funding_month}")
        if not self.wallet_id:
            raise ConfigurationError("Blink wallet is not configured")

        result = BatchResult(funding_month=period.key, funding_year=period.year)

        async with self.ledger.period_lock(period.key):
            balance = await self.blink.get_balance()
            merchant_economy = await self._merchant_economies(items)
            logger.info(
                f"🚀 Dispatching {len(items)} payments for {period.key} "
                f"(wallet balance {balance} sats)"
            )

            sent_before = False
            for item in items:
                attempt = PaymentAttempt(item=item)
                result.attempts.append(attempt)

                if item.merchant_id and merchant_economy.get(item.merchant_id) != item.economy_id:
                    attempt.fail(UNKNOWN_MERCHANT_ERROR)
                    logger.warning(f"❌ {self._label(item)}: merchant is not registered with {item.economy_id}")
                    continue

                if await self.ledger.has_completed(item.economy_id, period.key, item.merchant_id):
                    attempt.transition(PaymentState.ALREADY_PAID)
                    logger.info(f"⏭️  {self._label(item)} already paid for {period.key}, skipping")
                    continue

                if sent_before and self.delay_seconds > 0:
                    await self.sleep(self.delay_seconds)

                balance, contacted = await self._process(attempt, balance, item.memo or memo or default_memo(period.key))
                sent_before = sent_before or contacted
                await self._record(attempt, period, initiated_by, result)

        summary = result.summary()
        logger.info(
            f"✅ Batch {period.key} done: {summary['successCount']} sent, "
            f"{summary['failureCount']} failed, {summary['alreadyPaidCount']} already paid, "
            f"{summary['totalSent']} sats"
        )
        return result

    async def _merchant_economies(self, items: List[PaymentItem]) -> dict:
        """merchant_id -> economy_id for every merchant named in the batch"""
        merchant_ids = sorted({item.merchant_id for item in items if item.merchant_id})
        if not merchant_ids:
            return {}
        merchants = await self.merchant_repo.get_many(merchant_ids)
        return {m.id: m.economy_id for m in merchants}

    async def _process(self, attempt: PaymentAttempt, balance: int, memo: str):
        """Run one attempt to a terminal state. Returns (balance, contacted_api)."""
        item = attempt.item

        if not isinstance(item.amount_sats, int) or item.amount_sats <= 0:
            attempt.fail(INVALID_AMOUNT_ERROR)
            return balance, False

        recipient = resolve_recipient(item.address)
        if recipient is None:
            attempt.fail(INVALID_ADDRESS_ERROR)
            logger.warning(f"❌ {self._label(item)}: invalid address {item.address!r}")
            return balance, False

        if item.amount_sats > balance:
            attempt.fail(INSUFFICIENT_BALANCE_ERROR)
            logger.warning(f"❌ {self._label(item)}: {item.amount_sats} sats exceeds balance {balance}")
            return balance, False

        try:
            if recipient.kind == RecipientKind.INTRALEDGER:
                recipient_wallet = await self.blink.resolve_wallet_id(recipient.identifier)
                attempt.transition(PaymentState.SENT)
                sent = await self.blink.send_intraledger(self.wallet_id, recipient_wallet, item.amount_sats, memo)
            else:
                attempt.transition(PaymentState.SENT)
                sent = await self.blink.send_to_ln_address(self.wallet_id, recipient.identifier, item.amount_sats, memo)
        except PaymentProviderError as e:
            attempt.fail(e.message)
            logger.warning(f"❌ {self._label(item)}: {e.message}")
            return balance, True

        attempt.payment_hash = sent.transaction_id
        attempt.transition(PaymentState.CONFIRMED)
        logger.info(f"⚡ Paid {item.amount_sats} sats to {self._label(item)} ({sent.status})")
        return balance - item.amount_sats, True

    async def _record(self, attempt: PaymentAttempt, period: Period, initiated_by: str, result: BatchResult) -> None:
        item = attempt.item
        now = datetime.now(timezone.utc)
        row = FundingDisbursement(
            economy_id=item.economy_id,
            merchant_id=item.merchant_id,
            amount_sats=item.amount_sats,
            funding_month=period.key,
            funding_year=period.year,
            status=DisbursementStatus.COMPLETED if attempt.success else DisbursementStatus.FAILED,
            initiated_by=initiated_by,
            payment_method=PaymentMethod.LIGHTNING,
            recipient_address=item.address,
            error_message=attempt.error,
            payment_hash=attempt.payment_hash,
            processed_at=now,
            completed_at=now if attempt.success else None,
        )

        try:
            saved = await self.ledger.record_attempt(row, credit_economy=attempt.success)
        except Exception as e:
            if attempt.success:
                attempt.anomaly = (
                    f"Payment of {item.amount_sats} sats to {item.address} succeeded "
                    f"but the ledger write failed: {e}"
                )
            else:
                attempt.anomaly = f"Failed payment to {item.address} could not be recorded: {e}"
            logger.error(f"🚨 {self._label(item)}: {attempt.anomaly}", exc_info=True)
            raise LedgerWriteError(attempt.anomaly, result.attempts) from e

        attempt.disbursement_id = saved.id

    @staticmethod
    def _label(item: PaymentItem) -> str:
        name = item.economy_name or item.economy_id
        if item.merchant_id:
            return f"{name}/{item.merchant_id}"
        return name
