"""
Duplicate video detection and ranking eligibility

A video URL may be submitted once, globally. The duplicate key is the
SHA-256 of the normalized URL (utils.url_utils), so different spellings of
the same video collide.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from models.domain.video import VideoStatus, VideoSubmission
from utils.url_utils import normalize_video_url, video_url_hash

logger = logging.getLogger(__name__)


@dataclass
class DuplicateCheckResult:
    is_duplicate: bool
    normalized_url: str
    url_hash: str
    original: Optional[VideoSubmission] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        original = None
        if self.original:
            original = {
                'id': self.original.id,
                'economyId': self.original.economy_id,
                'videoUrl': self.original.video_url,
                'submissionMonth': self.original.submission_month,
                'status': self.original.status.value,
                'submittedAt': self.original.submitted_at.isoformat() if self.original.submitted_at else None,
            }
        return {
            'isDuplicate': self.is_duplicate,
            'normalizedUrl': self.normalized_url,
            'originalSubmission': original,
            'message': self.message,
        }


def filter_eligible(submissions: Iterable[VideoSubmission]) -> List[VideoSubmission]:
    """
    Approved submissions with at most one per URL hash.

    The earliest submission of a hash wins; input order is kept otherwise.
    """
    approved = [s for s in submissions if s.status == VideoStatus.APPROVED]

    earliest = {}
    for sub in approved:
        current = earliest.get(sub.video_url_hash)
        if current is None or _submitted_before(sub, current):
            earliest[sub.video_url_hash] = sub

    kept = {id(s) for s in earliest.values()}
    return [s for s in approved if id(s) in kept]


def _submitted_before(a: VideoSubmission, b: VideoSubmission) -> bool:
    if a.submitted_at and b.submitted_at:
        return (a.submitted_at, a.id) < (b.submitted_at, b.id)
    if a.submitted_at or b.submitted_at:
        # a row without a timestamp never beats one with a timestamp
        return a.submitted_at is not None
    return a.id < b.id


class DuplicateDetector:
    """Global duplicate lookup by normalized URL hash"""

    def __init__(self, video_repo):
        self.video_repo = video_repo

    async def check_duplicate(self, url: str, economy_id: Optional[str] = None) -> DuplicateCheckResult:
        """
        Check a URL against every prior submission.

        Raises:
            ValueError: If url is empty
        """
        url_hash = video_url_hash(url)
        normalized = normalize_video_url(url)

        original = await self.video_repo.get_by_url_hash(url_hash)
        if not original:
            return DuplicateCheckResult(is_duplicate=False, normalized_url=normalized, url_hash=url_hash)

        if economy_id and original.economy_id == economy_id:
            message = (
                f"Your economy already submitted this video for "
                f"{original.submission_month}"
            )
        else:
            message = "This video has already been submitted by another economy"

        logger.info(f"🔁 Duplicate video {normalized} (original {original.id})")
        return DuplicateCheckResult(
            is_duplicate=True,
            normalized_url=normalized,
            url_hash=url_hash,
            original=original,
            message=message,
        )
