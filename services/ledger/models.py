# services/ledger/models.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from shared.credits import CreditType

MIN_PURCHASE_USD = 5
MAX_PURCHASE_USD = 500

# Dollars per credit for custom amounts
CREDIT_RATES = {
    CreditType.APP: 0.15,
    CreditType.API: 0.10,
}


class PackId(str, Enum):
    STARTER = "starter"
    PRO = "pro"


class CreditPack(BaseModel):
    price_cents: int
    credits: int
    name: str


CREDIT_PACKS = {
    (PackId.STARTER, CreditType.APP): CreditPack(
        price_cents=750, credits=50, name="CharacterForge Starter Pack (50 Credits)"
    ),
    (PackId.STARTER, CreditType.API): CreditPack(
        price_cents=500, credits=50, name="CharacterForge API Starter (50 Calls)"
    ),
    (PackId.PRO, CreditType.APP): CreditPack(
        price_cents=2000, credits=200, name="CharacterForge Pro Pack (200 Credits)"
    ),
    (PackId.PRO, CreditType.API): CreditPack(
        price_cents=2000, credits=200, name="CharacterForge API Pro (200 Calls)"
    ),
}


class CheckoutRequest(BaseModel):
    packId: Optional[PackId] = None
    amount: Optional[float] = None
    type: CreditType = CreditType.APP

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return value
        if value < MIN_PURCHASE_USD:
            raise ValueError(f"Minimum purchase amount is ${MIN_PURCHASE_USD:.2f}")
        if value > MAX_PURCHASE_USD:
            raise ValueError(f"Maximum purchase amount is ${MAX_PURCHASE_USD:.2f}")
        return value

    @model_validator(mode="after")
    def require_pack_or_amount(self):
        if self.amount is None and self.packId is None:
            raise ValueError("Either amount or packId is required")
        return self


class CheckoutQuote(BaseModel):
    price_cents: int
    credits: int
    product_name: str
    credit_type: CreditType


class CheckoutResponse(BaseModel):
    url: str


class WebhookResponse(BaseModel):
    received: bool = True
    duplicate: bool = False


class BalanceResponse(BaseModel):
    user_id: str
    credits_balance: int
    api_credits_balance: int
