"""
Disbursement Repository - the funding payment ledger

Storage: PostgreSQL (funding_disbursements table)

Rows are appended, one per payment attempt. Nothing here enforces "at most
one completed payment per recipient": the dispatcher checks has_completed()
immediately before every send while holding period_lock().
"""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

import asyncpg

from models.domain.disbursement import (
    DisbursementFilter,
    DisbursementStats,
    DisbursementStatus,
    FundingDisbursement,
    PaymentMethod,
)
from services.errors import DisbursementInProgressError
from utils.id_generator import generate_disbursement_id

logger = logging.getLogger(__name__)

LOCK_NAMESPACE = 'cbaf-disbursement:'

DISBURSEMENT_COLUMNS = """
    id, economy_id, merchant_id, amount_sats, funding_month, funding_year,
    recipient_address, videos_approved, merchants_involved, new_merchants,
    payment_method, payment_hash, status, error_message, initiated_by,
    created_at, processed_at, completed_at
"""

INSERT_SQL = """
    INSERT INTO funding_disbursements (
        id, economy_id, merchant_id, amount_sats, funding_month, funding_year,
        recipient_address, videos_approved, merchants_involved, new_merchants,
        payment_method, payment_hash, status, error_message, initiated_by,
        processed_at, completed_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
    RETURNING created_at
"""


def _row_to_disbursement(row) -> FundingDisbursement:
    return FundingDisbursement(
        id=row['id'],
        economy_id=str(row['economy_id']),
        merchant_id=str(row['merchant_id']) if row['merchant_id'] else None,
        amount_sats=row['amount_sats'],
        funding_month=row['funding_month'],
        funding_year=row['funding_year'],
        recipient_address=row['recipient_address'],
        videos_approved=row['videos_approved'],
        merchants_involved=row['merchants_involved'],
        new_merchants=row['new_merchants'],
        payment_method=PaymentMethod(row['payment_method']),
        payment_hash=row['payment_hash'],
        status=DisbursementStatus(row['status']),
        error_message=row['error_message'],
        initiated_by=row['initiated_by'],
        created_at=row['created_at'],
        processed_at=row['processed_at'],
        completed_at=row['completed_at'],
    )


def _insert_args(d: FundingDisbursement) -> tuple:
    return (
        d.id, d.economy_id, d.merchant_id, d.amount_sats, d.funding_month, d.funding_year,
        d.recipient_address, d.videos_approved, d.merchants_involved, d.new_merchants,
        d.payment_method.value, d.payment_hash, d.status.value, d.error_message,
        d.initiated_by, d.processed_at, d.completed_at,
    )


def _where(filters: DisbursementFilter) -> Tuple[str, list]:
    clauses = []
    params = []
    if filters.funding_month:
        params.append(filters.funding_month)
        clauses.append(f"funding_month = ${len(params)}")
    if filters.status:
        params.append(filters.status.value)
        clauses.append(f"status = ${len(params)}")
    if filters.economy_id:
        params.append(filters.economy_id)
        clauses.append(f"economy_id = ${len(params)}")
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


class DisbursementRepository:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # LEDGER WRITES
    # =========================================================================

    async def create_pending(self, disbursements: List[FundingDisbursement]) -> List[FundingDisbursement]:
        """Insert pending rows for a saved allocation (one transaction)"""
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                for d in disbursements:
                    d.id = d.id or generate_disbursement_id()
                    d.created_at = await conn.fetchval(INSERT_SQL, *_insert_args(d))
        return disbursements

    async def record_attempt(self, disbursement: FundingDisbursement, credit_economy: bool = False) -> FundingDisbursement:
        """
        Append one payment attempt.

        With credit_economy the economy's total_funding_received is
        incremented in the same transaction, so both reflect the same outcome.
        """
        disbursement.id = disbursement.id or generate_disbursement_id()
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                disbursement.created_at = await conn.fetchval(INSERT_SQL, *_insert_args(disbursement))

                if credit_economy:
                    updated = await conn.execute("""
                        UPDATE economies
                        SET total_funding_received = total_funding_received + $2,
                            updated_at = NOW()
                        WHERE id = $1
                    """, disbursement.economy_id, disbursement.amount_sats)
                    if updated != 'UPDATE 1':
                        raise LookupError(f"Economy {disbursement.economy_id} not found")

        return disbursement

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def has_completed(self, economy_id: str, funding_month: str, merchant_id: Optional[str] = None) -> bool:
        """
        Does a completed payment already cover this recipient for the month?

        - economy-level (merchant_id None): any completed row for the
          economy and month, at either level
        - merchant-level: a completed economy-level row, or a completed
          row for the same merchant
        """
        async with self.db_pool.acquire() as conn:
            return await conn.fetchval("""
                SELECT EXISTS (
                    SELECT 1 FROM funding_disbursements
                    WHERE economy_id = $1
                      AND funding_month = $2
                      AND status = 'completed'
                      AND ($3::text IS NULL OR merchant_id IS NULL OR merchant_id = $3)
                )
            """, economy_id, funding_month, merchant_id)

    async def list(self, filters: DisbursementFilter, limit: int = 50, offset: int = 0) -> List[FundingDisbursement]:
        where, params = _where(filters)
        params.extend([limit, offset])
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT {DISBURSEMENT_COLUMNS}
                FROM funding_disbursements
                {where}
                ORDER BY created_at DESC, id DESC
                LIMIT ${len(params) - 1} OFFSET ${len(params)}
            """, *params)

            return [_row_to_disbursement(row) for row in rows]

    async def count(self, filters: DisbursementFilter) -> int:
        where, params = _where(filters)
        async with self.db_pool.acquire() as conn:
            return await conn.fetchval(f"SELECT COUNT(*) FROM funding_disbursements {where}", *params)

    async def stats(self, filters: DisbursementFilter) -> DisbursementStats:
        """
        Aggregates over every row matching the filters (not just one page).

        A pending row from a saved allocation is never closed, so once a
        completed payment covers its recipient (same rule as has_completed)
        it is counted as superseded and left out of total, pending and
        total_amount.
        """
        where, params = _where(filters)
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                WITH scoped AS (
                    SELECT d.status, d.amount_sats,
                           d.status = 'pending' AND EXISTS (
                               SELECT 1 FROM funding_disbursements c
                               WHERE c.economy_id = d.economy_id
                                 AND c.funding_month = d.funding_month
                                 AND c.status = 'completed'
                                 AND (c.merchant_id IS NULL OR d.merchant_id IS NULL
                                      OR c.merchant_id = d.merchant_id)
                           ) AS superseded
                    FROM funding_disbursements d
                    {where}
                )
                SELECT COUNT(*) FILTER (WHERE NOT superseded) AS total,
                       COUNT(*) FILTER (WHERE status = 'completed') AS completed,
                       COUNT(*) FILTER (WHERE status = 'failed') AS failed,
                       COUNT(*) FILTER (WHERE status = 'pending' AND NOT superseded) AS pending,
                       COUNT(*) FILTER (WHERE superseded) AS superseded,
                       COALESCE(SUM(amount_sats) FILTER (WHERE NOT superseded), 0) AS total_amount,
                       COALESCE(SUM(amount_sats) FILTER (WHERE status = 'completed'), 0) AS paid_amount
                FROM scoped
            """, *params)

            return DisbursementStats(
                total=row['total'],
                completed=row['completed'],
                failed=row['failed'],
                pending=row['pending'],
                superseded=row['superseded'],
                total_amount=int(row['total_amount']),
                paid_amount=int(row['paid_amount']),
            )

    # =========================================================================
    # PERIOD LOCK
    # =========================================================================

    @asynccontextmanager
    async def period_lock(self, funding_month: str):
        """
        Session advisory lock for one funding month, held on a dedicated
        connection for the whole dispatch run.

        Raises:
            DisbursementInProgressError: If another session holds the lock
        """
        key = LOCK_NAMESPACE + funding_month
        async with self.db_pool.acquire() as conn:
            acquired = await conn.fetchval("SELECT pg_try_advisory_lock(hashtext($1))", key)
            if not acquired:
                raise DisbursementInProgressError(funding_month)
            logger.info(f"🔒 Acquired disbursement lock for {funding_month}")
            try:
                yield
            finally:
                await conn.execute("SELECT pg_advisory_unlock(hashtext($1))", key)
                logger.info(f"🔓 Released disbursement lock for {funding_month}")
