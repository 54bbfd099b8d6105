"""
Funding API
===========

Endpoints:
- POST /api/cbaf/funding/calculate - economy-level allocation (not persisted)
- POST /api/cbaf/funding/save - record an allocation as pending disbursements
- POST /api/cbaf/funding/calculate-merchant-level - merchant-level split
- POST /api/cbaf/funding/send-batch - pay a list of recipients over Lightning
- POST /api/cbaf/funding/verify-batch - reachability check for many payout addresses
"""
import logging
from typing import List

from fastapi import APIRouter, Depends

from api.deps import (
    get_address_verifier,
    get_funding_allocator,
    get_funding_config,
    get_merchant_distributor,
    get_payment_dispatcher,
    http_error,
    parse_period,
)
from middleware.auth import Capability, CurrentUser, require_capability
from models.api.funding import (
    FundingCalculateRequest,
    FundingSaveRequest,
    SendBatchRequest,
    VerifyBatchRequest,
)
from models.domain.funding import FundingConfig, FundingPool
from models.domain.payment import PaymentItem
from services.address_verification import AddressVerifier
from services.errors import FundingError
from services.funding_allocator import FundingAllocator, generate_payment_records
from services.merchant_distributor import MerchantDistributor, merchant_payment_items
from services.payment_dispatcher import PaymentDispatcher

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cbaf/funding", tags=["Funding"])


def _payment_dicts(items: List[PaymentItem]) -> List[dict]:
    return [
        {
            'economyId': item.economy_id,
            'economyName': item.economy_name,
            'merchantId': item.merchant_id,
            'address': item.address,
            'amount': item.amount_sats,
            'memo': item.memo,
        }
        for item in items
    ]


@router.post("/calculate")
async def calculate_funding(
    body: FundingCalculateRequest,
    user: CurrentUser = Depends(require_capability(Capability.CALCULATE_FUNDING)),
    config: FundingConfig = Depends(get_funding_config),
    allocator: FundingAllocator = Depends(get_funding_allocator),
):
    period = parse_period(body.period)
    try:
        pool = await allocator.calculate_funding_allocation(period, config.with_total_pool(body.total_pool))
    except FundingError as e:
        raise http_error(e)

    return {
        'success': True,
        'fundingPool': pool.to_dict(),
        'paymentRecords': _payment_dicts(generate_payment_records(pool, period)),
    }


@router.post("/save")
async def save_funding(
    body: FundingSaveRequest,
    user: CurrentUser = Depends(require_capability(Capability.SAVE_FUNDING)),
    allocator: FundingAllocator = Depends(get_funding_allocator),
):
    period = parse_period(body.period)
    allocations = [a.to_domain() for a in body.funding_data.allocations]
    total = sum(a.total_funding for a in allocations)
    pool = FundingPool(
        period=period,
        total_pool=body.funding_data.total_pool if body.funding_data.total_pool is not None else total,
        total_allocated=total,
        base_amount=allocations[0].base_amount if allocations else 0,
        rank_bonus_pool=sum(a.rank_bonus for a in allocations),
        performance_bonus_pool=sum(a.performance_bonus for a in allocations),
        allocations=allocations,
    )

    try:
        saved = await allocator.save_funding_disbursements(pool, period, initiated_by=user.email or user.user_id)
    except FundingError as e:
        raise http_error(e)

    return {
        'success': True,
        'message': f"Saved {len(saved)} funding disbursements for {period.label}",
        'count': len(saved),
    }


@router.post("/calculate-merchant-level")
async def calculate_merchant_funding(
    body: FundingCalculateRequest,
    user: CurrentUser = Depends(require_capability(Capability.CALCULATE_FUNDING)),
    config: FundingConfig = Depends(get_funding_config),
    allocator: FundingAllocator = Depends(get_funding_allocator),
    distributor: MerchantDistributor = Depends(get_merchant_distributor),
):
    period = parse_period(body.period)
    try:
        economy_pool = await allocator.calculate_funding_allocation(period, config.with_total_pool(body.total_pool))
        merchant_pool = await distributor.calculate_merchant_funding(period, economy_pool.allocations)
    except FundingError as e:
        raise http_error(e)

    return {
        'success': True,
        'economyFunding': economy_pool.to_dict(),
        'merchantFunding': merchant_pool.to_dict(),
        'payments': _payment_dicts(merchant_payment_items(merchant_pool)),
    }


@router.post("/send-batch")
async def send_batch(
    body: SendBatchRequest,
    user: CurrentUser = Depends(require_capability(Capability.SEND_PAYMENTS)),
    dispatcher: PaymentDispatcher = Depends(get_payment_dispatcher),
):
    """Pay every item in order; each item succeeds or fails on its own"""
    try:
        result = await dispatcher.send_batch(
            [p.to_domain() for p in body.payments],
            funding_month=body.funding_month,
            funding_year=body.funding_year,
            initiated_by=user.email or user.user_id,
            memo=body.memo,
        )
    except FundingError as e:
        raise http_error(e)

    return {'success': True, **result.to_dict()}


@router.post("/verify-batch")
async def verify_batch(
    body: VerifyBatchRequest,
    user: CurrentUser = Depends(require_capability(Capability.VERIFY_ADDRESS_BATCH)),
    verifier: AddressVerifier = Depends(get_address_verifier),
):
    """Check every payout address with its provider before a payment run"""
    checked = await verifier.batch_verify([(a.address, a.provider) for a in body.addresses])

    results = []
    for item, result in zip(body.addresses, checked):
        results.append({
            'id': item.id,
            'economyName': item.economy_name,
            'address': result.normalized_address or item.address,
            'status': 'valid' if result.valid else 'invalid',
            'error': result.error,
            'walletId': result.metadata.get('walletId'),
        })

    valid = sum(1 for r in results if r['status'] == 'valid')
    logger.info(f"🔍 Verified {len(results)} addresses: {valid} valid")
    return {
        'success': True,
        'results': results,
        'stats': {'total': len(results), 'valid': valid, 'invalid': len(results) - valid},
    }
