"""
Authentication and capability checks

Roles are a closed set; what each role may do is a single lookup table
consulted by router dependencies. Nothing below the API layer knows about
roles.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional

from fastapi import Depends, HTTPException, Request
from jose import JWTError

from .jwt_session import decode_access_token


class Role(str, Enum):
    BCE = "bce"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Capability(str, Enum):
    VIEW_RANKINGS = "view_rankings"
    CALCULATE_RANKINGS = "calculate_rankings"
    CALCULATE_FUNDING = "calculate_funding"
    SAVE_FUNDING = "save_funding"
    SEND_PAYMENTS = "send_payments"
    VIEW_PAYMENTS = "view_payments"
    VIEW_WALLET = "view_wallet"
    SUBMIT_VIDEOS = "submit_videos"
    VALIDATE_ADDRESSES = "validate_addresses"
    VERIFY_ADDRESS_BATCH = "verify_address_batch"
    MANAGE_FUNDING_CONFIG = "manage_funding_config"


_BCE_CAPABILITIES = frozenset({
    Capability.VIEW_RANKINGS,
    Capability.SUBMIT_VIDEOS,
    Capability.VALIDATE_ADDRESSES,
})

_ADMIN_CAPABILITIES = _BCE_CAPABILITIES | frozenset({
    Capability.CALCULATE_RANKINGS,
    Capability.CALCULATE_FUNDING,
    Capability.VIEW_PAYMENTS,
})

ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.BCE: _BCE_CAPABILITIES,
    Role.ADMIN: _ADMIN_CAPABILITIES,
    Role.SUPER_ADMIN: frozenset(Capability),
}


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


class CurrentUser:
    """Minimal user info from JWT token"""
    def __init__(self, user_id: str, email: str, role: Role, name: Optional[str] = None):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.name = name


def _token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get("access_token")
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


async def get_current_user_optional(request: Request) -> Optional[CurrentUser]:
    """
    Get current user from the access_token cookie or a Bearer header
    (doesn't raise if not authenticated)
    """
    token = _token_from_request(request)
    if not token:
        return None

    try:
        payload = decode_access_token(token)
        return CurrentUser(
            user_id=payload["sub"],
            email=payload.get("email"),
            role=Role(payload.get("role")),
            name=payload.get("name"),
        )
    except (JWTError, KeyError, ValueError):
        return None


async def get_current_user(request: Request) -> CurrentUser:
    """
    Get current user (required - raises 401 if not authenticated)
    """
    user = await get_current_user_optional(request)

    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")

    return user


def require_capability(capability: Capability):
    """Dependency factory: the current user must hold capability (403 otherwise)"""
    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_capability(user.role, capability):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user
    return dependency
