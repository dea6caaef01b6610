"""Notification emission: emitter port, database emitter, dispatcher and templates."""

from .dispatcher import NotificationDispatcher, create_dispatcher
from .emitter import DatabaseNotificationEmitter, NotificationEmitter
from .models import MessageKind, NotificationError, NotificationTemplateError, OutgoingNotification
from .templates import MessageRenderer

__all__ = [
    "NotificationEmitter",
    "DatabaseNotificationEmitter",
    "NotificationDispatcher",
    "create_dispatcher",
    "MessageRenderer",
    "MessageKind",
    "OutgoingNotification",
    "NotificationError",
    "NotificationTemplateError",
]
