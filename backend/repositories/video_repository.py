"""
Video Repository - proof-of-work submissions and their merchant links

Storage: PostgreSQL (video_submissions, video_merchants tables)
"""
import logging
from typing import List, Optional

import asyncpg

from models.domain.video import VideoMerchantLink, VideoStatus, VideoSubmission

logger = logging.getLogger(__name__)

VIDEO_COLUMNS = """
    id, economy_id, video_url, video_url_hash, submission_month, status,
    merchant_count, submitted_at, reviewed_by, reviewed_at, admin_comments
"""


def _row_to_video(row) -> VideoSubmission:
    return VideoSubmission(
        id=str(row['id']),
        economy_id=str(row['economy_id']),
        video_url=row['video_url'],
        video_url_hash=row['video_url_hash'],
        submission_month=row['submission_month'],
        status=VideoStatus(row['status']),
        merchant_count=row['merchant_count'] or 0,
        submitted_at=row['submitted_at'],
        reviewed_by=row['reviewed_by'],
        reviewed_at=row['reviewed_at'],
        admin_comments=row['admin_comments'],
    )


class VideoRepository:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def get_by_url_hash(self, url_hash: str) -> Optional[VideoSubmission]:
        """Earliest submission with this normalized URL hash"""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                SELECT {VIDEO_COLUMNS}
                FROM video_submissions
                WHERE video_url_hash = $1
                ORDER BY submitted_at ASC, id ASC
                LIMIT 1
            """, url_hash)

            return _row_to_video(row) if row else None

    async def list_for_period(self, period_key: str) -> List[VideoSubmission]:
        """Every submission of the period, any status"""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT {VIDEO_COLUMNS}
                FROM video_submissions
                WHERE submission_month = $1
                ORDER BY submitted_at ASC, id ASC
            """, period_key)

            return [_row_to_video(row) for row in rows]

    async def get_merchant_links(self, video_ids: List[str]) -> List[VideoMerchantLink]:
        if not video_ids:
            return []
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT video_id, merchant_id, is_new_merchant
                FROM video_merchants
                WHERE video_id = ANY($1::text[])
            """, video_ids)

            return [
                VideoMerchantLink(
                    video_id=str(row['video_id']),
                    merchant_id=str(row['merchant_id']),
                    is_new_merchant=bool(row['is_new_merchant']),
                )
                for row in rows
            ]
