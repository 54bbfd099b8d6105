"""
Ranking Repository - saved monthly rankings

Storage: PostgreSQL (monthly_rankings table)

A period's rows are always replaced as a whole, inside one transaction.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List

import asyncpg

from models.domain.period import Period
from models.domain.ranking import EconomyRanking
from utils.id_generator import generate_ranking_id

logger = logging.getLogger(__name__)


class RankingRepository:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_for_period(self, period: Period) -> List[EconomyRanking]:
        """Saved rankings for a period, in overall rank order (empty if none)"""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT r.economy_id, e.economy_name, e.created_at AS economy_created_at,
                       r.videos_submitted, r.videos_approved, r.videos_rejected,
                       r.approval_rate, r.merchants_total, r.merchants_new,
                       r.merchants_returning, r.video_score, r.merchant_score,
                       r.new_merchant_score, r.overall_score,
                       r.rank_by_videos, r.rank_by_merchants,
                       r.rank_by_new_merchants, r.overall_rank, r.funding_earned
                FROM monthly_rankings r
                LEFT JOIN economies e ON e.id = r.economy_id
                WHERE r.month = $1
                ORDER BY r.overall_rank ASC
            """, period.key)

            return [
                EconomyRanking(
                    economy_id=str(row['economy_id']),
                    economy_name=row['economy_name'] or 'Unknown',
                    economy_created_at=row['economy_created_at'],
                    videos_submitted=row['videos_submitted'] or 0,
                    videos_approved=row['videos_approved'] or 0,
                    videos_rejected=row['videos_rejected'] or 0,
                    approval_rate=float(row['approval_rate'] or 0),
                    merchants_total=row['merchants_total'] or 0,
                    merchants_new=row['merchants_new'] or 0,
                    merchants_returning=row['merchants_returning'] or 0,
                    video_score=row['video_score'] or 0.0,
                    merchant_score=row['merchant_score'] or 0.0,
                    new_merchant_score=row['new_merchant_score'] or 0.0,
                    overall_score=row['overall_score'] or 0.0,
                    rank_by_videos=row['rank_by_videos'],
                    rank_by_merchants=row['rank_by_merchants'],
                    rank_by_new_merchants=row['rank_by_new_merchants'],
                    overall_rank=row['overall_rank'],
                    funding_earned=row['funding_earned'] or 0,
                )
                for row in rows
            ]

    async def list_periods(self) -> List[Period]:
        """Periods with saved rankings, newest first"""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT DISTINCT month
                FROM monthly_rankings
                ORDER BY month DESC
            """)

            return [Period.from_key(row['month']) for row in rows]

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def replace_period(self, period: Period, rankings: List[EconomyRanking]) -> None:
        calculated_at = datetime.now(timezone.utc)
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM monthly_rankings WHERE month = $1", period.key)

                if rankings:
                    await conn.executemany("""
                        INSERT INTO monthly_rankings (
                            id, economy_id, month, year,
                            videos_submitted, videos_approved, videos_rejected,
                            approval_rate, merchants_total, merchants_new,
                            merchants_returning, video_score, merchant_score,
                            new_merchant_score, overall_score,
                            rank_by_videos, rank_by_merchants,
                            rank_by_new_merchants, overall_rank,
                            funding_earned, calculated_at
                        )
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11,
                                $12, $13, $14, $15, $16, $17, $18, $19, 0, $20)
                    """, [
                        (
                            generate_ranking_id(), r.economy_id, period.key, period.year,
                            r.videos_submitted, r.videos_approved, r.videos_rejected,
                            Decimal(str(r.approval_rate)), r.merchants_total, r.merchants_new,
                            r.merchants_returning, r.video_score, r.merchant_score,
                            r.new_merchant_score, r.overall_score,
                            r.rank_by_videos, r.rank_by_merchants,
                            r.rank_by_new_merchants, r.overall_rank,
                            calculated_at,
                        )
                        for r in rankings
                    ])

    async def set_funding_earned(self, period: Period, amounts: Dict[str, int]) -> None:
        if not amounts:
            return
        async with self.db_pool.acquire() as conn:
            await conn.executemany("""
                UPDATE monthly_rankings
                SET funding_earned = $3
                WHERE economy_id = $1 AND month = $2
            """, [(economy_id, period.key, amount) for economy_id, amount in amounts.items()])
