"""
Merchant Repository - PostgreSQL storage for merchants

Storage: PostgreSQL (merchants table)
"""
import logging
from typing import List

import asyncpg

from models.domain.merchant import Merchant

logger = logging.getLogger(__name__)


class MerchantRepository:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def get_many(self, merchant_ids: List[str]) -> List[Merchant]:
        if not merchant_ids:
            return []
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, economy_id, merchant_name, local_name,
                       lightning_address, payment_provider,
                       address_verified, address_verified_at,
                       times_appeared_in_videos,
                       first_appearance_date, last_appearance_date
                FROM merchants
                WHERE id = ANY($1::text[])
            """, merchant_ids)

            return [
                Merchant(
                    id=str(row['id']),
                    economy_id=str(row['economy_id']),
                    merchant_name=row['merchant_name'] or 'Unknown Merchant',
                    local_name=row['local_name'],
                    lightning_address=row['lightning_address'],
                    payment_provider=row['payment_provider'],
                    address_verified=bool(row['address_verified']),
                    address_verified_at=row['address_verified_at'],
                    times_appeared_in_videos=row['times_appeared_in_videos'] or 0,
                    first_appearance_date=row['first_appearance_date'],
                    last_appearance_date=row['last_appearance_date'],
                )
                for row in rows
            ]
