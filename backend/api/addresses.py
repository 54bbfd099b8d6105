"""
Payment address validation

- POST /api/cbaf/validate-address - syntax check, plus a reachability
  check against the provider when verify is true
"""
from fastapi import APIRouter, Depends

from api.deps import get_address_verifier
from middleware.auth import Capability, CurrentUser, require_capability
from models.api.funding import ValidateAddressRequest
from services.address_validator import validate_address
from services.address_verification import AddressVerifier

router = APIRouter(prefix="/api/cbaf", tags=["Addresses"])


@router.post("/validate-address")
async def validate_payment_address(
    body: ValidateAddressRequest,
    user: CurrentUser = Depends(require_capability(Capability.VALIDATE_ADDRESSES)),
    verifier: AddressVerifier = Depends(get_address_verifier),
):
    if body.verify:
        result = await verifier.verify_reachable(body.address, body.provider)
    else:
        result = validate_address(body.address, body.provider)
    return result.to_dict()
