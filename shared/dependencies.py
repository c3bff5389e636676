from fastapi import Depends, Request

from services.checkout_service.gateway import StripeGateway
from services.notification_service.sender import EmailNotifier
from services.order_service.materializer import OrderMaterializer


def get_gateway(request: Request) -> StripeGateway:
    """Payment session gateway built at startup and kept on app.state."""
    return request.app.state.gateway


def get_notifier(request: Request) -> EmailNotifier:
    return request.app.state.notifier


def get_materializer(
    gateway: StripeGateway = Depends(get_gateway),
    notifier: EmailNotifier = Depends(get_notifier),
) -> OrderMaterializer:
    return OrderMaterializer(gateway, notifier)
