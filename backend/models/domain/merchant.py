"""
Merchant domain model
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Merchant:
    """
    A business registered under an economy

    Storage: PostgreSQL (merchants table)

    Only merchants with a verified payment address take part in the
    merchant-level funding split.
    """
    id: str
    economy_id: str
    merchant_name: str
    local_name: Optional[str] = None

    lightning_address: Optional[str] = None
    payment_provider: Optional[str] = None  # blink, fedi, machankura, other
    address_verified: bool = False
    address_verified_at: Optional[datetime] = None

    times_appeared_in_videos: int = 0
    first_appearance_date: Optional[datetime] = None
    last_appearance_date: Optional[datetime] = None

    @property
    def has_address(self) -> bool:
        return bool(self.lightning_address and self.lightning_address.strip())

