import httpx
import structlog

from shared.config import settings
from shared.errors import NotificationFailure

from .templates import RenderedEmail, render_confirmation, render_status_update

logger = structlog.get_logger(__name__)


class EmailNotifier:
    """
    Sends transactional emails through the Resend HTTP API.

    Stateless apart from the pooled HTTP client. Every failure (missing
    configuration, missing recipient, transport error, non-2xx response) is
    raised as NotificationFailure and never retried here.
    """

    def __init__(
        self,
        api_key: str,
        from_address: str = settings.EMAIL_FROM,
        brand: str = settings.EMAIL_BRAND,
        base_url: str = settings.RESEND_API_URL,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.brand = brand
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(settings.EMAIL_TIMEOUT_SECONDS),
        )

    @classmethod
    def from_settings(cls) -> "EmailNotifier":
        if not settings.RESEND_API_KEY:
            logger.warning("email_not_configured", hint="set RESEND_API_KEY")
        return cls(settings.RESEND_API_KEY)

    async def aclose(self):
        await self.client.aclose()

    async def send_confirmation(self, order, session_id: str) -> str:
        recipient = self._recipient(order)
        email = render_confirmation(order, session_id, self.brand)
        message_id = await self._send(recipient, email)
        logger.info("confirmation_email_sent", order_id=order.id, message_id=message_id, items=len(order.items))
        return message_id

    async def send_status_update(self, order, new_status: str, old_status: str | None = None) -> str:
        recipient = self._recipient(order)
        email = render_status_update(order, new_status, old_status, self.brand)
        message_id = await self._send(recipient, email)
        logger.info(
            "status_update_email_sent",
            order_id=order.id,
            old_status=old_status,
            new_status=new_status,
            message_id=message_id,
        )
        return message_id

    @staticmethod
    def _recipient(order) -> str:
        recipient = (order.shipping or {}).get("email")
        if not recipient:
            raise NotificationFailure(
                "Customer email is missing from order shipping information",
                order_id=order.id,
            )
        return recipient

    async def _send(self, recipient: str, email: RenderedEmail) -> str:
        if not self.api_key:
            raise NotificationFailure("Missing RESEND_API_KEY in environment variables")

        payload = {
            "from": f"{self.brand} <{self.from_address}>",
            "to": [recipient],
            "subject": email.subject,
            "html": email.html,
            "text": email.text,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = await self.client.post("/emails", json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("email_provider_rejected", status_code=exc.response.status_code, body=exc.response.text)
            raise NotificationFailure(f"Resend API error: HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("email_provider_unreachable", error=str(exc))
            raise NotificationFailure(f"Failed to reach email provider: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            return ""
        return str(body.get("id", "")) if isinstance(body, dict) else ""
