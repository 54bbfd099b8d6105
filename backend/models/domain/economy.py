"""
Economy domain model
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Economy:
    """
    A registered Bitcoin circular economy (BCE)

    Storage: PostgreSQL (economies table)

    Running totals are maintained by the review flow (videos) and the
    disbursement flow (total_funding_received).
    """
    id: str
    economy_name: str
    slug: str
    country: Optional[str] = None
    lightning_address: Optional[str] = None
    is_active: bool = True

    total_videos_submitted: int = 0
    total_videos_approved: int = 0
    total_funding_received: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
