# services/ledger/ledger_service.py
import logging
import math
from typing import Optional
from urllib.parse import urlparse

from services.ledger.models import (
    CREDIT_PACKS,
    CREDIT_RATES,
    BalanceResponse,
    CheckoutQuote,
    CheckoutRequest,
)
from shared.credits import CreditType
from shared.database import Database
from shared.errors import FunctionError, ValidationError
from shared.redis_client import RedisCache

logger = logging.getLogger(__name__)

IDEMPOTENCY_TTL_SECONDS = 7 * 24 * 60 * 60
DEFAULT_RETURN_BASE_URL = "http://localhost:3000"


def quote_checkout(request: CheckoutRequest) -> CheckoutQuote:
    """Price and credit count for a checkout; a custom amount wins over a pack"""
    if request.amount is not None:
        rate = CREDIT_RATES[request.type]
        # Round to cents before dividing so $7.50 at $0.15 is exactly 50 credits
        cents = round(request.amount * 100)
        credits = math.floor(cents / round(rate * 100))
        label = "API" if request.type == CreditType.API else "App"
        return CheckoutQuote(
            price_cents=cents,
            credits=credits,
            product_name=f"CharacterForge {label} Credits (${cents / 100:.2f})",
            credit_type=request.type,
        )

    pack = CREDIT_PACKS.get((request.packId, request.type))
    if pack is None:
        raise ValidationError("Invalid pack ID", field="packId")
    return CheckoutQuote(
        price_cents=pack.price_cents,
        credits=pack.credits,
        product_name=pack.name,
        credit_type=request.type,
    )


def resolve_return_base_url(referer: Optional[str]) -> str:
    """Origin (scheme://host) the buyer came from, used for success/cancel redirects"""
    if not referer:
        return DEFAULT_RETURN_BASE_URL
    parsed = urlparse(referer)
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return DEFAULT_RETURN_BASE_URL


def checkout_return_urls(base_url: str, credit_type: CreditType) -> tuple[str, str]:
    path = "/developer/billing" if credit_type == CreditType.API else "/app"
    return f"{base_url}{path}?success=true", f"{base_url}{path}?canceled=true"


class LedgerService:
    """Credit balances and purchase crediting"""

    def __init__(self, db: Database, idempotency: Optional[RedisCache] = None):
        self.db = db
        self.idempotency = idempotency

    async def get_balance(self, user_id: str) -> BalanceResponse:
        row = await self.db.fetch_one(
            "SELECT credits_balance, api_credits_balance FROM profiles WHERE id = $1", user_id
        )
        if not row:
            raise FunctionError("User not found", status_code=404, code="NOT_FOUND")
        return BalanceResponse(
            user_id=str(user_id),
            credits_balance=row["credits_balance"] or 0,
            api_credits_balance=row["api_credits_balance"] or 0,
        )

    async def credit_purchase(
        self, event_id: str, user_id: str, credits: int, credit_type: CreditType, ref_id: str
    ) -> bool:
        """
        Add purchased credits exactly once per payment event.

        The redis marker stops concurrent redeliveries early; handle_purchase's
        unique ref_id is the durable guard. Returns False for a duplicate.
        """
        marker = f"stripe_event:{event_id}"
        if self.idempotency is not None:
            claimed = await self.idempotency.set_if_absent(marker, "processing", IDEMPOTENCY_TTL_SECONDS)
            if not claimed:
                logger.info(f"🔁 WEBHOOK: Event {event_id} already processed")
                return False

        try:
            applied = await self.db.fetch_val(
                "SELECT handle_purchase($1, $2, $3, $4)", user_id, credits, ref_id, credit_type.value
            )
        except Exception:
            # Let the provider's redelivery try again
            if self.idempotency is not None:
                await self.idempotency.delete(marker)
            raise

        if self.idempotency is not None:
            await self.idempotency.set(marker, "done", ttl=IDEMPOTENCY_TTL_SECONDS)

        if not applied:
            logger.info(f"🔁 WEBHOOK: Purchase {ref_id} was already credited")
            return False

        logger.info(f"💰 WEBHOOK: Added {credits} {credit_type.value} credits to user {user_id}")
        return True
