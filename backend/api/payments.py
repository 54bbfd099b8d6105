"""
Payments API
============

Endpoints:
- GET /api/cbaf/payments/history - ledger rows with pagination and stats
- GET /api/cbaf/payments/wallet - funding wallet balance
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import get_blink_client, get_disbursement_repo, http_error, parse_period
from config import Settings, get_settings
from middleware.auth import Capability, CurrentUser, require_capability
from models.domain.disbursement import DisbursementFilter, DisbursementStatus
from repositories.disbursement_repository import DisbursementRepository
from services.blink_client import BlinkClient
from services.errors import ConfigurationError, FundingError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cbaf/payments", tags=["Payments"])


@router.get("/history")
async def payment_history(
    period: Optional[str] = None,
    status: Optional[str] = None,
    economy_id: Optional[str] = Query(default=None, alias="economyId"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(require_capability(Capability.VIEW_PAYMENTS)),
    repo: DisbursementRepository = Depends(get_disbursement_repo),
):
    """
    Ledger rows, newest first.

    stats aggregate every row matching the filters, not only this page.
    """
    funding_month = parse_period(period).key if period else None
    try:
        status_filter = DisbursementStatus(status) if status else None
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status {status!r} (expected pending, completed or failed)",
        )

    filters = DisbursementFilter(funding_month=funding_month, status=status_filter, economy_id=economy_id)
    rows = await repo.list(filters, limit=limit, offset=offset)
    total = await repo.count(filters)
    stats = await repo.stats(filters)

    return {
        'disbursements': [d.to_dict() for d in rows],
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'hasMore': offset + len(rows) < total,
        },
        'stats': stats.to_dict(),
    }


@router.get("/wallet")
async def wallet_balance(
    user: CurrentUser = Depends(require_capability(Capability.VIEW_WALLET)),
    blink: BlinkClient = Depends(get_blink_client),
    settings: Settings = Depends(get_settings),
):
    try:
        if not settings.blink_configured:
            raise ConfigurationError("Blink wallet is not configured")
        balance = await blink.get_balance()
    except FundingError as e:
        raise http_error(e)

    return {
        'balance': balance,
        'currency': 'BTC',
        'unit': 'sats',
        'walletId': settings.blink_wallet_id,
    }
