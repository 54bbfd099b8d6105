"""
Economy Repository - PostgreSQL storage for registered economies

Storage: PostgreSQL (economies table)
"""
import logging
from typing import List, Optional

import asyncpg

from models.domain.economy import Economy

logger = logging.getLogger(__name__)

ECONOMY_COLUMNS = """
    id, economy_name, slug, country, lightning_address, is_active,
    total_videos_submitted, total_videos_approved, total_funding_received,
    created_at, updated_at
"""


def _row_to_economy(row) -> Economy:
    return Economy(
        id=str(row['id']),
        economy_name=row['economy_name'],
        slug=row['slug'],
        country=row['country'],
        lightning_address=row['lightning_address'],
        is_active=bool(row['is_active']),
        total_videos_submitted=row['total_videos_submitted'] or 0,
        total_videos_approved=row['total_videos_approved'] or 0,
        total_funding_received=row['total_funding_received'] or 0,
        created_at=row['created_at'],
        updated_at=row['updated_at'],
    )


class EconomyRepository:
    """Read access to economies (writes happen in the registration flow)"""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def get_by_id(self, economy_id: str) -> Optional[Economy]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                SELECT {ECONOMY_COLUMNS}
                FROM economies
                WHERE id = $1
            """, economy_id)

            return _row_to_economy(row) if row else None

    async def get_many(self, economy_ids: List[str]) -> List[Economy]:
        if not economy_ids:
            return []
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT {ECONOMY_COLUMNS}
                FROM economies
                WHERE id = ANY($1::text[])
            """, economy_ids)

            return [_row_to_economy(row) for row in rows]

    async def list_active(self) -> List[Economy]:
        """Active economies, oldest first"""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT {ECONOMY_COLUMNS}
                FROM economies
                WHERE is_active = TRUE
                ORDER BY created_at ASC, id ASC
            """)

            return [_row_to_economy(row) for row in rows]
