"""
Video submission domain models
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class VideoStatus(str, Enum):
    """Review status of a proof-of-work video"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


@dataclass
class VideoSubmission:
    """
    One proof-of-work video submitted by an economy

    Storage: PostgreSQL (video_submissions table)

    video_url_hash is the SHA-256 of the normalized URL and is the global
    duplicate key (see utils.url_utils.video_url_hash).
    """
    id: str
    economy_id: str
    video_url: str
    video_url_hash: str
    submission_month: str  # "YYYY-MM"
    status: VideoStatus = VideoStatus.PENDING
    merchant_count: int = 0

    submitted_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    admin_comments: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.status == VideoStatus.APPROVED


@dataclass(frozen=True)
class VideoMerchantLink:
    """
    A merchant appearing in a video (video_merchants join row)

    is_new_merchant is fixed when the link is created: True iff the merchant
    had no prior appearance.
    """
    video_id: str
    merchant_id: str
    is_new_merchant: bool = False
