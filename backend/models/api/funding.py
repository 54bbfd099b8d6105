"""
Pydantic request models for the /api/cbaf endpoints

Field names are snake_case in Python and accept the camelCase names the
admin dashboard sends.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from models.domain.funding import FundingAllocation
from models.domain.payment import PaymentItem


class CamelModel(BaseModel):
    model_config = {
        "populate_by_name": True,
    }


class RankingCalculateRequest(CamelModel):
    """Compute and persist rankings (defaults to the current month)"""
    year: Optional[int] = None
    month: Optional[int] = None


class FundingCalculateRequest(CamelModel):
    period: str
    total_pool: Optional[int] = Field(default=None, alias="totalPool", ge=0)


class AllocationPayload(CamelModel):
    economy_id: str = Field(alias="economyId")
    economy_name: str = Field(default="", alias="economyName")
    lightning_address: Optional[str] = Field(default=None, alias="lightningAddress")
    overall_rank: int = Field(alias="overallRank", ge=1)
    videos_approved: int = Field(default=0, alias="videosApproved", ge=0)
    merchants_total: int = Field(default=0, alias="merchantsTotal", ge=0)
    merchants_new: int = Field(default=0, alias="merchantsNew", ge=0)
    base_amount: int = Field(default=0, alias="baseAmount", ge=0)
    rank_bonus: int = Field(default=0, alias="rankBonus", ge=0)
    performance_bonus: int = Field(default=0, alias="performanceBonus", ge=0)
    total_funding: int = Field(alias="totalFunding", ge=0)

    def to_domain(self) -> FundingAllocation:
        return FundingAllocation(**self.model_dump(by_alias=False))


class FundingDataPayload(CamelModel):
    total_pool: Optional[int] = Field(default=None, alias="totalPool", ge=0)
    allocations: List[AllocationPayload]


class FundingSaveRequest(CamelModel):
    period: str
    funding_data: FundingDataPayload = Field(alias="fundingData")


class PaymentPayload(CamelModel):
    economy_id: str = Field(alias="economyId")
    economy_name: str = Field(default="", alias="economyName")
    merchant_id: Optional[str] = Field(default=None, alias="merchantId")
    address: str
    amount: int = Field(gt=0)
    memo: Optional[str] = None

    def to_domain(self) -> PaymentItem:
        return PaymentItem(
            economy_id=self.economy_id,
            economy_name=self.economy_name,
            merchant_id=self.merchant_id,
            address=self.address,
            amount_sats=self.amount,
            memo=self.memo,
        )


class SendBatchRequest(CamelModel):
    payments: List[PaymentPayload] = Field(min_length=1)
    funding_month: str = Field(alias="fundingMonth")
    funding_year: int = Field(alias="fundingYear")
    memo: Optional[str] = None


class CheckDuplicateRequest(CamelModel):
    url: str = Field(min_length=1)
    economy_id: Optional[str] = Field(default=None, alias="economyId")


class ValidateAddressRequest(CamelModel):
    address: str
    provider: str
    verify: bool = False


class VerifyAddressPayload(CamelModel):
    id: str
    economy_name: str = Field(default="", alias="economyName")
    address: str = Field(alias="cleanedAddress")
    provider: str = "blink"


class VerifyBatchRequest(CamelModel):
    addresses: List[VerifyAddressPayload] = Field(min_length=1, max_length=200)


class FundingConfigUpdate(CamelModel):
    """Partial update; omitted fields keep their stored value"""
    base_amount: Optional[int] = Field(default=None, alias="baseAmount", ge=0, le=1_000_000)
    rank_bonus_enabled: Optional[bool] = Field(default=None, alias="rankBonusEnabled")
    rank_bonus_pool: Optional[int] = Field(default=None, alias="rankBonusPool", ge=0, le=100_000_000)
    performance_bonus_enabled: Optional[bool] = Field(default=None, alias="performanceBonusEnabled")
    performance_bonus_pool: Optional[int] = Field(default=None, alias="performanceBonusPool", ge=0, le=100_000_000)
