from app.notifications.base import LogNotifier, Notifier, OrderNotification, WebhookNotifier
from app.notifications.dispatcher import NotificationDispatcher

__all__ = ["LogNotifier", "Notifier", "OrderNotification", "WebhookNotifier", "NotificationDispatcher"]
