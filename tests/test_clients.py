"""
Tests for the outbound HTTP clients (merchant platform, mail API).
"""
from decimal import Decimal

import pytest
import requests

from core.email_sender import HttpEmailSender
from core.exceptions import NotificationDeliveryFailure
from core.merchant_api import MerchantApiError, MerchantApiService


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self._payload


@pytest.fixture()
def captured_posts(monkeypatch):
    calls = []
    responses = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "json": json})
        return responses.pop(0) if responses else FakeResponse()

    monkeypatch.setattr(requests, "post", fake_post)
    return calls, responses


class TestMerchantApiService:

    def test_send_payout_uses_order_id_as_idempotency_key(self, captured_posts):
        calls, _ = captured_posts
        api = MerchantApiService(base_url="http://platform.test/", api_key="k")

        api.send_payout("fan@example.com", Decimal("12.50"), reference="order-9")

        assert calls[0]["url"] == "http://platform.test/payouts"
        assert calls[0]["headers"]["Idempotency-Key"] == "order-9"
        assert calls[0]["headers"]["Authorization"] == "Bearer k"
        assert calls[0]["json"] == {"email": "fan@example.com", "amount": "12.50", "reference": "order-9"}

    def test_create_discount_code_returns_payload(self, captured_posts):
        calls, responses = captured_posts
        responses.append(FakeResponse(payload={"id": 7, "code": "SUMMER7"}))
        api = MerchantApiService(base_url="http://platform.test", api_key="k")

        result = api.create_discount_code("m-1", "shop.example.com")

        assert result["code"] == "SUMMER7"
        assert calls[0]["json"] == {"merchant_id": "m-1", "merchant_domain": "shop.example.com"}

    def test_http_error_is_wrapped(self, captured_posts):
        _, responses = captured_posts
        responses.append(FakeResponse(status_code=503))
        api = MerchantApiService(base_url="http://platform.test", api_key="k")

        with pytest.raises(MerchantApiError):
            api.send_payout("fan@example.com", Decimal("1.00"), reference="order-1")


class TestHttpEmailSender:

    def test_posts_message(self, captured_posts):
        calls, _ = captured_posts
        sender = HttpEmailSender("http://mail.test/send", "mail-key", from_email="noreply@shop.test")

        sender.send_email("partner@example.com", "Hello", "Body")

        assert calls[0]["json"] == {
            "from": "noreply@shop.test",
            "to": "partner@example.com",
            "subject": "Hello",
            "text": "Body",
        }

    def test_rejection_raises_delivery_failure(self, captured_posts):
        _, responses = captured_posts
        responses.append(FakeResponse(status_code=500))
        sender = HttpEmailSender("http://mail.test/send", "mail-key")

        with pytest.raises(NotificationDeliveryFailure) as exc_info:
            sender.send_email("partner@example.com", "Hello", "Body")

        assert exc_info.value.recipient == "partner@example.com"
