"""Data models and exceptions for notification emission."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from marketplace.domain.models import NotificationType


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when a message template is missing or misses a variable."""

    pass


class MessageKind(str, Enum):
    """Notification messages the engine sends; each has its own templates."""

    OFFER_RECEIVED = "offer_received"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_REJECTED = "offer_rejected"
    OFFER_WITHDRAWN = "offer_withdrawn"
    PROJECT_STATUS = "project_status"

    @property
    def notification_type(self) -> NotificationType:
        if self is MessageKind.OFFER_ACCEPTED or self is MessageKind.PROJECT_STATUS:
            return NotificationType.PROJECT
        return NotificationType.OFFER


@dataclass
class OutgoingNotification:
    """A notification ready to be handed to an emitter.

    Attributes:
        kind: Message kind the title and message were rendered from
        user_id: Recipient
        title: Rendered title
        message: Rendered message
        data: Entity ids the notification refers to
    """

    kind: MessageKind
    user_id: str
    title: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> NotificationType:
        return self.kind.notification_type
