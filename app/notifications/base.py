"""
Order notification interface.

Notifiers deliver "new order" events to admins (chat groups, dashboards).
Delivery itself is an external collaborator; this module defines the event,
the interface and two concrete notifiers: one that only logs and one that
POSTs the event to a webhook.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Optional

import httpx

from app.models.enums import OrderType

logger = logging.getLogger("payment_router.notifications")


def format_idr(amount: int) -> str:
    """Rupiah with dot thousands separators, e.g. 'Rp 150.000'."""
    return "Rp " + f"{amount:,}".replace(",", ".")


@dataclass(frozen=True)
class OrderNotification:
    """A newly recorded order awaiting payment."""

    order_id: str
    external_id: str
    customer_name: str
    amount: int
    payment_method: str
    order_type: str = OrderType.PURCHASE.value
    product_id: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_id: Optional[str] = None
    kind: str = "new_order"

    @property
    def title(self) -> str:
        label = "RENTAL" if self.order_type == OrderType.RENTAL.value else "PURCHASE"
        return f"New {label} order"

    @property
    def message(self) -> str:
        return (
            f"{self.customer_name or 'Guest Customer'} ordered "
            f"{self.product_id or 'a product'} for {format_idr(self.amount)} "
            f"via {self.payment_method}, awaiting payment."
        )

    def to_payload(self) -> dict:
        payload = asdict(self)
        payload["title"] = self.title
        payload["message"] = self.message
        return payload


class Notifier(ABC):
    """Abstract base class for notification channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def notify(self, notification: OrderNotification) -> None:
        """
        Deliver one notification.

        Implementations may raise on failure; the dispatcher catches and
        logs every error.
        """
        ...


class LogNotifier(Notifier):
    """Writes notifications to the application log."""

    @property
    def name(self) -> str:
        return "log"

    async def notify(self, notification: OrderNotification) -> None:
        logger.info("NOTIFY | %s | %s", notification.title, notification.message)


class WebhookNotifier(Notifier):
    """POSTs the notification as JSON to a configured URL."""

    def __init__(self, http: httpx.AsyncClient, url: str):
        self._http = http
        self._url = url

    @property
    def name(self) -> str:
        return "webhook"

    async def notify(self, notification: OrderNotification) -> None:
        response = await self._http.post(self._url, json=notification.to_payload())
        response.raise_for_status()
