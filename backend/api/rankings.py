"""
Rankings API
============

Endpoints:
- POST /api/cbaf/rankings - calculate and save rankings for a period
- GET /api/cbaf/rankings - saved rankings for a period
- GET /api/cbaf/rankings/periods - periods that have saved rankings
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from api.deps import get_ranking_engine, http_error, parse_period
from middleware.auth import Capability, CurrentUser, require_capability
from models.api.funding import RankingCalculateRequest
from models.domain.period import Period
from services.errors import FundingError, NotFoundError
from services.ranking_engine import RankingEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cbaf", tags=["Rankings"])


@router.post("/rankings")
async def calculate_rankings(
    body: RankingCalculateRequest,
    user: CurrentUser = Depends(require_capability(Capability.CALCULATE_RANKINGS)),
    engine: RankingEngine = Depends(get_ranking_engine),
):
    """Calculate rankings for year/month (current month if omitted) and save them"""
    if body.year is None and body.month is None:
        period = Period.current()
    else:
        period = parse_period(year=body.year, month=body.month)

    try:
        rankings = await engine.calculate_rankings(period)
        await engine.save_rankings(period, rankings)
    except FundingError as e:
        raise http_error(e)

    logger.info(f"Rankings for {period.key} recalculated by {user.email}")
    return {
        'success': True,
        'period': period.to_dict(),
        'rankings': [r.to_dict() for r in rankings],
        'count': len(rankings),
    }


@router.get("/rankings")
async def get_rankings(
    period: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    user: CurrentUser = Depends(require_capability(Capability.VIEW_RANKINGS)),
    engine: RankingEngine = Depends(get_ranking_engine),
):
    """Saved rankings (empty list if none were calculated for the period)"""
    parsed = parse_period(period, year, month)
    try:
        rankings = await engine.get_saved_rankings(parsed)
    except NotFoundError:
        rankings = []

    return {
        'period': parsed.to_dict(),
        'rankings': [r.to_dict() for r in rankings],
        'count': len(rankings),
    }


@router.get("/rankings/periods")
async def get_ranking_periods(
    user: CurrentUser = Depends(require_capability(Capability.VIEW_RANKINGS)),
    engine: RankingEngine = Depends(get_ranking_engine),
):
    periods = await engine.get_available_periods()
    return {'periods': [p.to_dict() for p in periods]}
