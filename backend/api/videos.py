"""
Video submission checks

- POST /api/cbaf/videos/check-duplicate - has this video been submitted before?
"""
from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_duplicate_detector
from middleware.auth import Capability, CurrentUser, require_capability
from models.api.funding import CheckDuplicateRequest
from services.duplicate_detection import DuplicateDetector

router = APIRouter(prefix="/api/cbaf/videos", tags=["Videos"])


@router.post("/check-duplicate")
async def check_duplicate(
    body: CheckDuplicateRequest,
    user: CurrentUser = Depends(require_capability(Capability.SUBMIT_VIDEOS)),
    detector: DuplicateDetector = Depends(get_duplicate_detector),
):
    try:
        result = await detector.check_duplicate(body.url, body.economy_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result.to_dict()
