# services/ledger/routes.py
import logging
import os

from fastapi import APIRouter, Depends, Request

from services.ledger.ledger_service import (
    LedgerService,
    checkout_return_urls,
    quote_checkout,
    resolve_return_base_url,
)
from services.ledger.models import (
    BalanceResponse,
    CheckoutRequest,
    CheckoutResponse,
    WebhookResponse,
)
from services.ledger.stripe_client import StripeClient, verify_webhook_signature
from shared.auth_middleware import AuthContext, get_current_user
from shared.credits import CreditType
from shared.database import Database, get_db
from shared.errors import PaymentError
from shared.rate_limiter import InMemoryRateLimiter, get_rate_limiter
from shared.redis_client import RedisCache, get_idempotency_cache

logger = logging.getLogger(__name__)

checkout_router = APIRouter()
webhook_router = APIRouter()
balance_router = APIRouter()


async def get_ledger_service(db: Database = Depends(get_db)) -> LedgerService:
    return LedgerService(db)


async def get_webhook_ledger_service(
    db: Database = Depends(get_db), idempotency: RedisCache = Depends(get_idempotency_cache)
) -> LedgerService:
    return LedgerService(db, idempotency)


def get_stripe_client() -> StripeClient:
    return StripeClient()


@checkout_router.post("/create-checkout", response_model=CheckoutResponse)
async def create_checkout(
    checkout: CheckoutRequest,
    request: Request,
    user: AuthContext = Depends(get_current_user),
    rate_limiter: InMemoryRateLimiter = Depends(get_rate_limiter),
    stripe: StripeClient = Depends(get_stripe_client),
):
    """Start a payment session for a credit pack or a custom amount"""
    rate_limiter.check(f"checkout:{user.user_id}")

    quote = quote_checkout(checkout)
    base_url = resolve_return_base_url(request.headers.get("referer") or request.headers.get("origin"))
    success_url, cancel_url = checkout_return_urls(base_url, quote.credit_type)

    logger.info(
        f"🛒 CHECKOUT: {quote.credits} {quote.credit_type.value} credits for "
        f"${quote.price_cents / 100:.2f} (user {user.user_id})"
    )
    session = await stripe.create_checkout_session(
        user_id=user.user_id,
        amount_cents=quote.price_cents,
        credits=quote.credits,
        credit_type=quote.credit_type.value,
        product_name=quote.product_name,
        success_url=success_url,
        cancel_url=cancel_url,
    )

    if not session.get("url"):
        raise PaymentError("Checkout session has no URL")
    return CheckoutResponse(url=session["url"])


@webhook_router.post("/stripe-webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    ledger: LedgerService = Depends(get_webhook_ledger_service),
):
    """Credit balances when a checkout completes; redeliveries are acknowledged without re-crediting"""
    payload = await request.body()
    event = verify_webhook_signature(
        payload, request.headers.get("stripe-signature"), os.getenv("STRIPE_WEBHOOK_SECRET")
    )

    if event.get("type") != "checkout.session.completed":
        return WebhookResponse()

    session = (event.get("data") or {}).get("object") or {}
    metadata = session.get("metadata") or {}
    user_id = session.get("client_reference_id") or metadata.get("user_id")

    try:
        credits = int(metadata.get("credits") or 0)
    except (TypeError, ValueError):
        credits = 0

    if not user_id or credits <= 0:
        logger.warning(f"⚠️ WEBHOOK: Event {event.get('id')} has no user or credits, ignoring")
        return WebhookResponse()

    credit_type = CreditType.API if metadata.get("credit_type") == "api" else CreditType.APP
    applied = await ledger.credit_purchase(
        event_id=event.get("id") or session.get("id"),
        user_id=user_id,
        credits=credits,
        credit_type=credit_type,
        ref_id=session.get("id") or event.get("id"),
    )
    return WebhookResponse(duplicate=not applied)


@balance_router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    user: AuthContext = Depends(get_current_user),
    ledger: LedgerService = Depends(get_ledger_service),
):
    return await ledger.get_balance(user.user_id)
