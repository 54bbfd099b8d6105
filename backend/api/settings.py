"""
Super admin settings

- GET /api/cbaf/settings/funding-config - funding configuration in effect
- PUT /api/cbaf/settings/funding-config - partial update (omitted fields
  keep their stored value)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_settings_repo, http_error
from middleware.auth import Capability, CurrentUser, require_capability
from models.api.funding import FundingConfigUpdate
from repositories import SettingsRepository
from services.errors import ConfigurationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cbaf/settings", tags=["Settings"])


@router.get("/funding-config")
async def get_funding_settings(
    user: CurrentUser = Depends(require_capability(Capability.MANAGE_FUNDING_CONFIG)),
    repo: SettingsRepository = Depends(get_settings_repo),
):
    try:
        config = await repo.load_funding_config()
    except ConfigurationError as e:
        raise http_error(e)
    return {'config': config.to_dict()}


@router.put("/funding-config")
async def update_funding_settings(
    body: FundingConfigUpdate,
    user: CurrentUser = Depends(require_capability(Capability.MANAGE_FUNDING_CONFIG)),
    repo: SettingsRepository = Depends(get_settings_repo),
):
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No funding settings to update")

    try:
        config = await repo.save_funding_config(updates, updated_by=user.email or user.user_id)
    except ConfigurationError as e:
        raise http_error(e)

    return {
        'success': True,
        'message': "Funding configuration updated",
        'config': config.to_dict(),
    }
