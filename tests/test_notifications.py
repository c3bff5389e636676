"""Email rendering and delivery through the Resend API."""

import json
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest

from services.notification_service.sender import EmailNotifier
from services.notification_service.templates import (
    format_amount,
    render_confirmation,
    render_status_update,
    status_content,
)
from shared.errors import NotificationFailure


def _order(**overrides) -> SimpleNamespace:
    fields = {
        "id": "8f14e45f-ceea-467f-a0e6-1b2c3d4e5f60",
        "total_amount": 1849.0,
        "currency": "SEK",
        "discount_code": None,
        "discount_amount": 0,
        "created_at": datetime(2024, 5, 1, 14, 30, tzinfo=timezone.utc),
        "stripe_session_id": "cs_1",
        "shipping": {
            "fullName": "Amal <Haddad>",
            "email": "amal@example.com",
            "address": "Storgatan 1",
            "city": "Stockholm",
            "postalCode": "111 22",
            "country": "SE",
        },
        "items": [SimpleNamespace(product_name="Silk Scarf", quantity=2, unit_price=900.0)],
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _notifier(handler, api_key: str = "re_test_key") -> EmailNotifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.resend.test")
    return EmailNotifier(api_key, from_address="support@arvsouq.com", brand="ARV Souq", client=client)


class TestTemplates:
    """Subjects and bodies."""

    def test_format_amount(self) -> None:
        assert format_amount(1849, "sek") == "1849.00 SEK"

    def test_confirmation(self) -> None:
        email = render_confirmation(_order(), "cs_1", "ARV Souq")

        assert email.subject == "Order Confirmation - Thank you for your purchase!"
        assert "Silk Scarf (Qty: 2) - 1800.00 SEK" in email.text
        assert "Total: 1849.00 SEK" in email.text
        assert "Transaction ID: cs_1" in email.text
        assert "Amal &lt;Haddad&gt;" in email.html
        assert "Discount" not in email.text

    def test_confirmation_with_discount(self) -> None:
        order = _order(discount_code="SPRING", discount_amount=100.0, total_amount=1749.0)

        email = render_confirmation(order, "cs_1", "ARV Souq")

        # 1800 + 49 - 100 = 1749
        assert "Subtotal: 1800.00 SEK" in email.text
        assert "Shipping: 49.00 SEK" in email.text
        assert "Discount (SPRING): -100.00 SEK" in email.text
        assert "Total: 1749.00 SEK" in email.text

    def test_item_without_name(self) -> None:
        order = _order(items=[SimpleNamespace(product_name=None, quantity=1, unit_price=10.0)])

        assert "- Product (Qty: 1)" in render_confirmation(order, "cs_1", "ARV Souq").text

    def test_status_update_subject(self) -> None:
        email = render_status_update(_order(), "shipped", "processing", "ARV Souq")

        assert email.subject == "Order Update - Your Order Has Shipped! (Order #8f14e45f)"
        assert "Previous Status: processing" in email.text
        assert "Current Status: shipped" in email.text

    def test_unknown_status_uses_generic_content(self) -> None:
        content = status_content("on-hold")

        assert content.title == "Order Status Update"
        assert "on-hold" in content.message


class TestEmailNotifier:
    """Delivery and failure translation."""

    async def test_send_confirmation(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "msg_123"})

        notifier = _notifier(handler)
        message_id = await notifier.send_confirmation(_order(), "cs_1")
        await notifier.aclose()

        assert message_id == "msg_123"
        request = requests[0]
        assert request.url.path == "/emails"
        assert request.headers["Authorization"] == "Bearer re_test_key"
        body = json.loads(request.content)
        assert body["from"] == "ARV Souq <support@arvsouq.com>"
        assert body["to"] == ["amal@example.com"]
        assert body["subject"] == "Order Confirmation - Thank you for your purchase!"

    async def test_send_status_update(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["subject"].startswith("Order Update - Your Order Has Been Delivered")
            return httpx.Response(200, json={"id": "msg_456"})

        notifier = _notifier(handler)

        assert await notifier.send_status_update(_order(), "delivered") == "msg_456"

    async def test_unexpected_response_body(self) -> None:
        notifier = _notifier(lambda request: httpx.Response(200, json=["queued"]))

        assert await notifier.send_confirmation(_order(), "cs_1") == ""

    async def test_provider_error(self) -> None:
        notifier = _notifier(lambda request: httpx.Response(422, json={"message": "invalid from"}))

        with pytest.raises(NotificationFailure, match="HTTP 422"):
            await notifier.send_confirmation(_order(), "cs_1")

    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NotificationFailure, match="Failed to reach"):
            await _notifier(handler).send_confirmation(_order(), "cs_1")

    async def test_missing_recipient(self) -> None:
        notifier = _notifier(lambda request: httpx.Response(200, json={"id": "never"}))

        with pytest.raises(NotificationFailure, match="Customer email is missing"):
            await notifier.send_confirmation(_order(shipping={"fullName": "Omar"}), "cs_1")

    async def test_missing_api_key(self) -> None:
        notifier = _notifier(lambda request: httpx.Response(200, json={"id": "never"}), api_key="")

        with pytest.raises(NotificationFailure, match="RESEND_API_KEY"):
            await notifier.send_confirmation(_order(), "cs_1")
