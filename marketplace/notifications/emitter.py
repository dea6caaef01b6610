"""Notification emitter port and its database implementation."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from marketplace.domain.models import Notification, NotificationType
from marketplace.logging import get_logger
from marketplace.persistence.database import get_session
from marketplace.persistence.repositories import NotificationRepository
from marketplace.utils.timestamps import utc_now

logger = get_logger(__name__, component="notification")


class NotificationEmitter(ABC):
    """Port through which the engine records notifications.

    Delivery (email, push) is another system's concern; an emitter only has to
    record that a user should be told something.
    """

    @abstractmethod
    def emit(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record one notification for ``user_id``.

        Implementations may raise; the dispatcher catches and logs.
        """


class DatabaseNotificationEmitter(NotificationEmitter):
    """Writes notification rows in a session of its own.

    The session is separate from the operation that triggered the
    notification, so a failed write never touches the committed status change.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    def emit(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=dict(data or {}),
            created_at=self.clock(),
        )

        with get_session() as session:
            stored = NotificationRepository(session).add(notification)

        logger.debug(
            f"Notification {stored.id} stored for user {user_id}",
            extra={"event": "notification.stored", "notification_type": type.value},
        )
