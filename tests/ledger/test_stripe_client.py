import json
from urllib.parse import parse_qs

import httpx
import pytest

from services.ledger.stripe_client import StripeClient, sign_payload, verify_webhook_signature
from shared.errors import PaymentError

SECRET = "whsec_test_secret"
NOW = 1_750_000_000


def event_bytes(**overrides) -> bytes:
    event = {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": {"id": "cs_1"}}}
    event.update(overrides)
    return json.dumps(event).encode("utf-8")


def test_valid_signature_returns_event():
    payload = event_bytes()

    event = verify_webhook_signature(payload, sign_payload(payload, SECRET, NOW), SECRET, now=NOW + 10)

    assert event["id"] == "evt_1"


def test_any_matching_v1_is_accepted():
    payload = event_bytes()
    header = sign_payload(payload, SECRET, NOW).replace("v1=", "v1=deadbeef,v1=")

    assert verify_webhook_signature(payload, header, SECRET, now=NOW)["type"] == "checkout.session.completed"


@pytest.mark.parametrize(
    "header",
    [None, "", "garbage", "t=abc,v1=00", f"t={NOW}", f"t={NOW},v1=00"],
)
def test_bad_headers_are_rejected(header):
    with pytest.raises(PaymentError) as exc_info:
        verify_webhook_signature(event_bytes(), header, SECRET, now=NOW)

    assert exc_info.value.code == "INVALID_SIGNATURE"


def test_tampered_payload_is_rejected():
    header = sign_payload(event_bytes(), SECRET, NOW)

    with pytest.raises(PaymentError):
        verify_webhook_signature(event_bytes(id="evt_forged"), header, SECRET, now=NOW)


def test_stale_timestamp_is_rejected():
    payload = event_bytes()

    with pytest.raises(PaymentError, match="tolerance"):
        verify_webhook_signature(payload, sign_payload(payload, SECRET, NOW), SECRET, now=NOW + 301)


def test_missing_secret_is_rejected():
    payload = event_bytes()

    with pytest.raises(PaymentError):
        verify_webhook_signature(payload, sign_payload(payload, SECRET, NOW), None, now=NOW)


def test_signed_non_json_is_invalid_payload():
    payload = b"not json"

    with pytest.raises(PaymentError) as exc_info:
        verify_webhook_signature(payload, sign_payload(payload, SECRET, NOW), SECRET, now=NOW)

    assert exc_info.value.code == "INVALID_PAYLOAD"


@pytest.mark.asyncio
async def test_checkout_session_form():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["authorization"]
        captured["form"] = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        return httpx.Response(200, json={"id": "cs_1", "url": "https://checkout.stripe.test/cs_1"})

    client = StripeClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    session = await client.create_checkout_session(
        user_id="user-1",
        amount_cents=1000,
        credits=100,
        credit_type="api",
        product_name="CharacterForge API Credits ($10.00)",
        success_url="http://localhost:3000/developer/billing?success=true",
        cancel_url="http://localhost:3000/developer/billing?canceled=true",
    )

    assert session["url"] == "https://checkout.stripe.test/cs_1"
    assert captured["url"] == "https://api.stripe.com/v1/checkout/sessions"
    assert captured["auth"].startswith("Basic ")
    form = captured["form"]
    assert form["line_items[0][price_data][unit_amount]"] == "1000"
    assert form["metadata[credits]"] == "100"
    assert form["metadata[credit_type]"] == "api"
    assert form["client_reference_id"] == "user-1"
    assert form["line_items[0][price_data][product_data][description]"] == "100 API calls"


@pytest.mark.asyncio
async def test_rejected_session_raises_payment_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Amount too small"}})

    client = StripeClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(PaymentError, match="Amount too small"):
        await client.create_checkout_session("u", 100, 1, "app", "p", "s", "c")
