# services/ledger/stripe_client.py
"""Minimal Stripe REST client: checkout sessions and webhook signature checks"""

import hashlib
import hmac
import json
import logging
import os
import time
from typing import Optional

import httpx

from shared.errors import PaymentError

logger = logging.getLogger(__name__)

STRIPE_API_BASE = "https://api.stripe.com/v1"
SIGNATURE_TOLERANCE_SECONDS = 300


class StripeClient:
    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.secret_key = os.getenv("STRIPE_SECRET_KEY")
        if not self.secret_key:
            raise ValueError("Missing STRIPE_SECRET_KEY environment variable")
        self._http_client = http_client

    async def _post_form(self, path: str, form: dict) -> httpx.Response:
        url = f"{STRIPE_API_BASE}/{path}"
        auth = (self.secret_key, "")
        if self._http_client is not None:
            return await self._http_client.post(url, data=form, auth=auth)
        async with httpx.AsyncClient(timeout=30.0) as client:
            return await client.post(url, data=form, auth=auth)

    async def create_checkout_session(
        self,
        user_id: str,
        amount_cents: int,
        credits: int,
        credit_type: str,
        product_name: str,
        success_url: str,
        cancel_url: str,
    ) -> dict:
        """Create a one-off payment session; credits and balance type travel in metadata"""
        description = f"{credits} {'API calls' if credit_type == 'api' else 'image generations'}"
        form = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": "usd",
            "line_items[0][price_data][unit_amount]": str(amount_cents),
            "line_items[0][price_data][product_data][name]": product_name,
            "line_items[0][price_data][product_data][description]": description,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": user_id,
            "metadata[user_id]": user_id,
            "metadata[credits]": str(credits),
            "metadata[credit_type]": credit_type,
        }

        try:
            response = await self._post_form("checkout/sessions", form)
        except httpx.HTTPError as e:
            logger.error(f"❌ STRIPE: Checkout request failed: {e}")
            raise PaymentError("Payment provider unavailable", status_code=502)

        if response.status_code != 200:
            message = response.json().get("error", {}).get("message", "Checkout failed")
            logger.error(f"❌ STRIPE: Checkout session rejected ({response.status_code}): {message}")
            raise PaymentError(message)

        return response.json()


def verify_webhook_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> dict:
    """
    Check a Stripe-Signature header and return the decoded event.

    The header looks like ``t=<unix>,v1=<hex>[,v1=<hex>...]``; each v1 is an
    HMAC-SHA256 of ``"<t>.<payload>"`` keyed with the endpoint secret.
    """
    if not signature_header or not secret:
        raise PaymentError("Missing signature or secret", code="INVALID_SIGNATURE")

    timestamp = None
    signatures = []
    for item in signature_header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not timestamp.isdigit() or not signatures:
        raise PaymentError("Malformed signature header", code="INVALID_SIGNATURE")

    signed_payload = timestamp.encode("utf-8") + b"." + payload
    expected = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise PaymentError("Signature verification failed", code="INVALID_SIGNATURE")

    current = time.time() if now is None else now
    if abs(current - int(timestamp)) > tolerance:
        raise PaymentError("Signature timestamp outside tolerance", code="INVALID_SIGNATURE")

    try:
        return json.loads(payload)
    except ValueError:
        raise PaymentError("Invalid webhook payload", code="INVALID_PAYLOAD")


def sign_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for payload (used by tests and local tooling)"""
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.".encode("utf-8") + payload, hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={digest}"
