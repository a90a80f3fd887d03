import json
import time

import pytest

from localys.exceptions import (
    InvalidWebhookSignatureException,
    MissingWebhookSignatureException,
    PaymentNotConfiguredException,
)
from localys.services.stripe_service import StripeService, _flatten_params, parse_signature_header

from .conftest import WEBHOOK_SECRET, sign_webhook

PAYLOAD = json.dumps({"id": "evt_1", "type": "checkout.session.completed"}).encode()


@pytest.fixture
def stripe():
    return StripeService(secret_key="sk_test", webhook_secret=WEBHOOK_SECRET)


def test_construct_event_accepts_valid_signature(stripe):
    event = stripe.construct_event(PAYLOAD, sign_webhook(PAYLOAD))
    assert event["id"] == "evt_1"


def test_construct_event_accepts_any_matching_v1(stripe):
    header = sign_webhook(PAYLOAD) + ",v1=" + "0" * 64
    assert stripe.construct_event(PAYLOAD, header)["type"] == "checkout.session.completed"


def test_construct_event_rejects_wrong_secret(stripe):
    with pytest.raises(InvalidWebhookSignatureException):
        stripe.construct_event(PAYLOAD, sign_webhook(PAYLOAD, secret="whsec_other"))


def test_construct_event_rejects_tampered_payload(stripe):
    header = sign_webhook(PAYLOAD)
    with pytest.raises(InvalidWebhookSignatureException):
        stripe.construct_event(PAYLOAD.replace(b"evt_1", b"evt_2"), header)


def test_construct_event_rejects_stale_timestamp(stripe):
    header = sign_webhook(PAYLOAD, timestamp=int(time.time()) - 301)
    with pytest.raises(InvalidWebhookSignatureException):
        stripe.construct_event(PAYLOAD, header)


def test_construct_event_requires_header(stripe):
    with pytest.raises(MissingWebhookSignatureException):
        stripe.construct_event(PAYLOAD, None)

    with pytest.raises(InvalidWebhookSignatureException):
        stripe.construct_event(PAYLOAD, "garbage")


def test_construct_event_without_secret():
    stripe = StripeService(secret_key="sk_test", webhook_secret="")
    with pytest.raises(PaymentNotConfiguredException):
        stripe.construct_event(PAYLOAD, sign_webhook(PAYLOAD))


def test_parse_signature_header():
    assert parse_signature_header("t=1,v1=a,v1=b") == {"t": ["1"], "v1": ["a", "b"]}


def test_flatten_params():
    params = _flatten_params({
        "mode": "payment",
        "line_items": [{"price_data": {"currency": "usd", "unit_amount": 2500}, "quantity": 1}],
        "metadata": {"itemId": "3"},
        "skip": None,
    })
    assert params == [
        ("mode", "payment"),
        ("line_items[0][price_data][currency]", "usd"),
        ("line_items[0][price_data][unit_amount]", "2500"),
        ("line_items[0][quantity]", "1"),
        ("metadata[itemId]", "3"),
    ]


def test_not_configured():
    stripe = StripeService(secret_key="", webhook_secret="")
    assert not stripe.is_configured
