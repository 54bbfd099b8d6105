"""
Shared router dependencies

Each service is built per request from the shared asyncpg pool. Tests
replace these through app.dependency_overrides.
"""
import logging
from typing import Optional

import asyncpg
from fastapi import Depends, HTTPException

from config import Settings, get_settings
from models.domain.funding import FundingConfig
from models.domain.period import Period
from repositories import (
    DisbursementRepository,
    EconomyRepository,
    MerchantRepository,
    RankingRepository,
    SettingsRepository,
    VideoRepository,
    get_db_pool,
)
from services.address_verification import AddressVerifier
from services.blink_client import BlinkClient
from services.duplicate_detection import DuplicateDetector
from services.errors import (
    ConfigurationError,
    DisbursementInProgressError,
    FundingError,
    LedgerWriteError,
    NotFoundError,
    PaymentProviderError,
    ValidationError,
)
from services.funding_allocator import FundingAllocator
from services.merchant_distributor import MerchantDistributor
from services.payment_dispatcher import PaymentDispatcher
from services.ranking_engine import RankingEngine

logger = logging.getLogger(__name__)


def http_error(error: FundingError) -> HTTPException:
    """Translate a service exception into the HTTP response for it"""
    if isinstance(error, (ValidationError, ConfigurationError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, DisbursementInProgressError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, PaymentProviderError):
        return HTTPException(status_code=502, detail=error.message)
    if isinstance(error, LedgerWriteError):
        return HTTPException(status_code=500, detail={
            'message': str(error),
            'results': [a.to_dict() for a in error.attempts],
        })
    return HTTPException(status_code=500, detail=str(error))


def parse_period(key: Optional[str] = None, year: Optional[int] = None, month: Optional[int] = None) -> Period:
    """Period from a "YYYY-MM" key or a year/month pair (400 if malformed)"""
    try:
        if key:
            return Period.from_key(key)
        if year is not None and month is not None:
            return Period.of(year, month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    raise HTTPException(status_code=400, detail="Period is required (period=YYYY-MM or year and month)")


async def get_pool() -> asyncpg.Pool:
    return await get_db_pool()


def get_ranking_engine(pool: asyncpg.Pool = Depends(get_pool)) -> RankingEngine:
    return RankingEngine(EconomyRepository(pool), VideoRepository(pool), RankingRepository(pool))


def get_funding_allocator(pool: asyncpg.Pool = Depends(get_pool)) -> FundingAllocator:
    return FundingAllocator(RankingRepository(pool), EconomyRepository(pool), DisbursementRepository(pool))


def get_merchant_distributor(pool: asyncpg.Pool = Depends(get_pool)) -> MerchantDistributor:
    return MerchantDistributor(VideoRepository(pool), MerchantRepository(pool))


def get_disbursement_repo(pool: asyncpg.Pool = Depends(get_pool)) -> DisbursementRepository:
    return DisbursementRepository(pool)


def get_duplicate_detector(pool: asyncpg.Pool = Depends(get_pool)) -> DuplicateDetector:
    return DuplicateDetector(VideoRepository(pool))


def get_settings_repo(pool: asyncpg.Pool = Depends(get_pool)) -> SettingsRepository:
    return SettingsRepository(pool)


async def get_funding_config(repo: SettingsRepository = Depends(get_settings_repo)) -> FundingConfig:
    """Funding configuration, read once per request"""
    try:
        return await repo.load_funding_config()
    except ConfigurationError as e:
        raise http_error(e)


def get_blink_client(settings: Settings = Depends(get_settings)) -> BlinkClient:
    return BlinkClient(
        settings.blink_api_url,
        api_key=settings.blink_api_key,
        timeout=settings.payment_timeout_seconds,
    )


def get_payment_dispatcher(
    blink: BlinkClient = Depends(get_blink_client),
    disbursement_repo: DisbursementRepository = Depends(get_disbursement_repo),
    pool: asyncpg.Pool = Depends(get_pool),
    settings: Settings = Depends(get_settings),
) -> PaymentDispatcher:
    return PaymentDispatcher(
        blink,
        disbursement_repo,
        MerchantRepository(pool),
        wallet_id=settings.blink_wallet_id,
        delay_seconds=settings.payment_delay_seconds,
    )


def get_address_verifier(settings: Settings = Depends(get_settings)) -> AddressVerifier:
    return AddressVerifier(settings.blink_api_url, timeout=settings.address_check_timeout_seconds)
