import json
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from services.ledger.main import app
from services.ledger.ledger_service import LedgerService
from services.ledger.routes import get_stripe_client, get_webhook_ledger_service
from services.ledger.stripe_client import StripeClient, sign_payload
from shared.database import get_db
from shared.rate_limiter import InMemoryRateLimiter, get_rate_limiter
from tests.fakes import FakeDatabase, FakeRedisCache, make_token

WEBHOOK_SECRET = "whsec_test_secret"


class FakeStripe:
    def __init__(self):
        self.sessions = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.sessions.append({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
        return httpx.Response(200, json={"id": "cs_1", "url": "https://checkout.stripe.test/cs_1"})


@pytest.fixture
def stripe():
    return FakeStripe()


@pytest.fixture
def ledger_state():
    return {"db": FakeDatabase(fetch_val=True), "idempotency": FakeRedisCache()}


@pytest.fixture
def client(stripe, ledger_state):
    db = ledger_state["db"]
    limiter = InMemoryRateLimiter(max_requests=10, window_seconds=60)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_stripe_client] = lambda: StripeClient(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(stripe.handler))
    )
    app.dependency_overrides[get_webhook_ledger_service] = lambda: LedgerService(db, ledger_state["idempotency"])
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(test_user):
    return {"Authorization": f"Bearer {make_token(test_user['id'])}"}


def completed_event(user_id: str, event_id: str = "evt_1", credits: str = "66", credit_type: str = "app") -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_1",
                    "client_reference_id": user_id,
                    "metadata": {"user_id": user_id, "credits": credits, "credit_type": credit_type},
                }
            },
        }
    ).encode("utf-8")


def post_webhook(client: TestClient, payload: bytes, signature=None):
    return client.post(
        "/stripe-webhook",
        content=payload,
        headers={
            "content-type": "application/json",
            "stripe-signature": signature or sign_payload(payload, WEBHOOK_SECRET),
        },
    )


def test_checkout_for_custom_amount(client, stripe, auth_headers, test_user):
    response = client.post(
        "/create-checkout",
        json={"amount": 10, "type": "api"},
        headers={**auth_headers, "Referer": "https://app.characterforge.app/developer"},
    )

    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.test/cs_1"}
    (form,) = stripe.sessions
    assert form["metadata[credits]"] == "100"
    assert form["metadata[user_id]"] == test_user["id"]
    assert form["success_url"] == "https://app.characterforge.app/developer/billing?success=true"


def test_checkout_for_pack(client, stripe, auth_headers):
    response = client.post("/create-checkout", json={"packId": "starter"}, headers=auth_headers)

    assert response.status_code == 200
    (form,) = stripe.sessions
    assert form["line_items[0][price_data][unit_amount]"] == "750"
    assert form["metadata[credits]"] == "50"
    assert form["success_url"] == "http://localhost:3000/app?success=true"


def test_checkout_amount_below_minimum_is_400(client, stripe, auth_headers):
    response = client.post("/create-checkout", json={"amount": 4}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["field"] == "amount"
    assert stripe.sessions == []


def test_checkout_requires_session_token(client):
    response = client.post(
        "/create-checkout", json={"packId": "pro"}, headers={"x-api-key": "sk_characterforge_abc"}
    )

    assert response.status_code == 401


def test_webhook_credits_once_and_acknowledges_redelivery(client, ledger_state, test_user):
    payload = completed_event(test_user["id"])

    first = post_webhook(client, payload)
    second = post_webhook(client, payload)

    assert first.status_code == 200
    assert first.json() == {"received": True, "duplicate": False}
    assert second.status_code == 200
    assert second.json() == {"received": True, "duplicate": True}
    ((_, args),) = ledger_state["db"].queries("fetch_val")
    assert args == (test_user["id"], 66, "cs_1", "app")


def test_webhook_with_bad_signature_is_400(client, ledger_state, test_user):
    response = post_webhook(client, completed_event(test_user["id"]), signature="t=1,v1=bad")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"
    assert ledger_state["db"].calls == []


def test_webhook_ignores_other_event_types(client, ledger_state):
    payload = json.dumps({"id": "evt_9", "type": "payment_intent.created", "data": {"object": {}}}).encode()

    response = post_webhook(client, payload)

    assert response.status_code == 200
    assert response.json()["duplicate"] is False
    assert ledger_state["db"].calls == []


def test_webhook_without_credits_is_acknowledged_without_crediting(client, ledger_state, test_user):
    response = post_webhook(client, completed_event(test_user["id"], credits="0"))

    assert response.status_code == 200
    assert ledger_state["db"].calls == []


def test_webhook_api_credit_type(client, ledger_state, test_user):
    post_webhook(client, completed_event(test_user["id"], event_id="evt_api", credits="100", credit_type="api"))

    ((_, args),) = ledger_state["db"].queries("fetch_val")
    assert args[-1] == "api"


def test_balance(client, ledger_state, auth_headers, test_user):
    ledger_state["db"]._answers["fetch_one"] = {"credits_balance": 5, "api_credits_balance": 10}

    response = client.get("/balance", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"user_id": test_user["id"], "credits_balance": 5, "api_credits_balance": 10}
