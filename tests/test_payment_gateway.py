import hashlib
import hmac
import json
import time
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
import stripe

from keepthisfile.errors import PaymentGatewayError, PaymentSessionNotFound, ValidationFailed
from keepthisfile.services.payment_gateway import PaymentGateway

pytestmark = pytest.mark.anyio

WEBHOOK_SECRET = "whsec_test"


def checkout_session(payment_intent="pi_1", payment_status="paid", status="complete"):
    return SimpleNamespace(
        id="cs_1",
        url="https://checkout.stripe.com/c/pay/cs_1",
        payment_status=payment_status,
        status=status,
        payment_intent=payment_intent,
    )


def sign(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def client():
    return Mock()


@pytest.fixture
def gateway(client):
    return PaymentGateway(client, webhook_secret=WEBHOOK_SECRET, currency="usd")


async def test_create_checkout_session(gateway, client):
    client.checkout.sessions.create.return_value = checkout_session()

    session = await gateway.create_checkout_session(
        user_id="user-1",
        size_bytes=5 * 1024 * 1024,
        price_cents=100,
        success_url="https://app.test/?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="https://app.test/?payment_cancelled=true",
    )

    assert session.session_id == "cs_1"
    assert session.checkout_url == "https://checkout.stripe.com/c/pay/cs_1"

    params = client.checkout.sessions.create.call_args.kwargs["params"]
    assert params["mode"] == "payment"
    assert params["line_items"][0]["price_data"]["unit_amount"] == 100
    assert params["line_items"][0]["price_data"]["currency"] == "usd"
    assert params["line_items"][0]["price_data"]["product_data"]["name"] == "Upload 5.00MB"
    assert params["metadata"] == {"user_id": "user-1", "size_bytes": str(5 * 1024 * 1024)}


async def test_create_checkout_session_failure(gateway, client):
    client.checkout.sessions.create.side_effect = stripe.APIConnectionError("network down")

    with pytest.raises(PaymentGatewayError):
        await gateway.create_checkout_session("user-1", 200_000, 100, "https://a", "https://b")


@pytest.mark.parametrize("payment_status, status, paid", [
    ("paid", "complete", True),
    ("unpaid", "open", False),
    ("paid", "open", False),
    ("no_payment_required", "complete", False),
])
async def test_session_status(gateway, client, payment_status, status, paid):
    client.checkout.sessions.retrieve.return_value = checkout_session(payment_status=payment_status, status=status)

    result = await gateway.get_session_status("cs_1")

    assert result.paid is paid
    assert result.payment_intent_id == "pi_1"


async def test_session_status_with_expanded_payment_intent(gateway, client):
    client.checkout.sessions.retrieve.return_value = checkout_session(payment_intent=SimpleNamespace(id="pi_9"))

    assert (await gateway.get_session_status("cs_1")).payment_intent_id == "pi_9"


async def test_missing_session_is_not_found(gateway, client):
    client.checkout.sessions.retrieve.side_effect = stripe.InvalidRequestError(
        "No such checkout.session: cs_1", "id", code="resource_missing"
    )

    with pytest.raises(PaymentSessionNotFound):
        await gateway.get_session_status("cs_1")


async def test_session_status_upstream_failure(gateway, client):
    client.checkout.sessions.retrieve.side_effect = stripe.APIConnectionError("network down")

    with pytest.raises(PaymentGatewayError):
        await gateway.get_session_status("cs_1")


async def test_refund(gateway, client):
    client.checkout.sessions.retrieve.return_value = checkout_session()
    client.refunds.create.return_value = SimpleNamespace(id="re_1", amount=100, status="succeeded")

    refund = await gateway.refund("cs_1")

    assert refund.refund_id == "re_1"
    assert refund.amount == 100
    params = client.refunds.create.call_args.kwargs["params"]
    assert params["payment_intent"] == "pi_1"
    assert params["reason"] == "requested_by_customer"
    assert params["metadata"] == {"reason": "upload_failed", "session_id": "cs_1"}


async def test_refund_without_payment_intent_returns_none(gateway, client):
    client.checkout.sessions.retrieve.return_value = checkout_session(payment_intent=None)

    assert await gateway.refund("cs_1") is None
    client.refunds.create.assert_not_called()


@pytest.mark.parametrize("target", ["retrieve", "refund"])
async def test_refund_api_failure_returns_none(gateway, client, target):
    client.checkout.sessions.retrieve.return_value = checkout_session()
    error = stripe.APIError("boom")
    if target == "retrieve":
        client.checkout.sessions.retrieve.side_effect = error
    else:
        client.refunds.create.side_effect = error

    assert await gateway.refund("cs_1") is None


async def test_attach_metadata(gateway, client):
    client.checkout.sessions.retrieve.return_value = checkout_session()

    await gateway.attach_metadata("cs_1", {"arweave_tx_id": "tx1"})

    client.payment_intents.update.assert_called_once_with("pi_1", params={"metadata": {"arweave_tx_id": "tx1"}})


async def test_attach_metadata_failure_raises(gateway, client):
    client.checkout.sessions.retrieve.return_value = checkout_session()
    client.payment_intents.update.side_effect = stripe.APIError("boom")

    with pytest.raises(PaymentGatewayError):
        await gateway.attach_metadata("cs_1", {"arweave_tx_id": "tx1"})


async def test_parse_webhook(gateway):
    payload = json.dumps({
        "id": "evt_1",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_1", "object": "checkout.session"}},
    }).encode()

    event = gateway.parse_webhook(payload, sign(payload))

    assert event.type == "checkout.session.completed"
    assert event.data.object.id == "cs_1"


@pytest.mark.parametrize("signature", [None, "", "t=1,v1=deadbeef"])
async def test_parse_webhook_rejects_bad_signature(gateway, signature):
    with pytest.raises(ValidationFailed):
        gateway.parse_webhook(b'{"id": "evt_1", "object": "event"}', signature)


async def test_parse_webhook_rejects_wrong_secret(gateway):
    payload = b'{"id": "evt_1", "object": "event", "type": "ping", "data": {"object": {}}}'

    with pytest.raises(ValidationFailed):
        gateway.parse_webhook(payload, sign(payload, "whsec_other"))
