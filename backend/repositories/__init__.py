"""
Repository Pattern - Storage abstraction layer

Repositories hide storage details (PostgreSQL) from business logic.
Consumers work with domain models, not asyncpg records.

Tables:
- EconomyRepository: economies
- VideoRepository: video_submissions, video_merchants
- MerchantRepository: merchants
- RankingRepository: monthly_rankings
- DisbursementRepository: funding_disbursements (payment ledger)
- SettingsRepository: super_admin_settings (funding configuration)
"""
from config.database import create_postgres_pool

from .economy_repository import EconomyRepository
from .video_repository import VideoRepository
from .merchant_repository import MerchantRepository
from .ranking_repository import RankingRepository
from .disbursement_repository import DisbursementRepository
from .settings_repository import SettingsRepository

# Shared database connection pool (initialized on first use)
db_pool = None


async def get_db_pool():
    """Get or create shared database connection pool"""
    global db_pool
    if db_pool is None:
        db_pool = await create_postgres_pool()
    return db_pool


async def close_db_pool():
    global db_pool
    if db_pool is not None:
        await db_pool.close()
        db_pool = None


__all__ = [
    'EconomyRepository',
    'VideoRepository',
    'MerchantRepository',
    'RankingRepository',
    'DisbursementRepository',
    'SettingsRepository',
    'db_pool',
    'get_db_pool',
    'close_db_pool',
]
