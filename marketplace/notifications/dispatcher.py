"""Fire-and-forget notification dispatch.

The dispatcher renders a message and hands it to the emitter, either inline or
on a small thread pool. It never raises: every failure is logged and dropped,
so a notification problem can never fail or roll back the operation that
triggered it.
"""

import contextvars
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional

from marketplace.config.models import NotificationsConfig
from marketplace.logging import get_logger

from .emitter import DatabaseNotificationEmitter, NotificationEmitter
from .models import MessageKind, OutgoingNotification
from .templates import MessageRenderer

logger = get_logger(__name__, component="notification")


class NotificationDispatcher:
    """Renders notifications and emits them without blocking the caller.

    Example:
        >>> dispatcher = NotificationDispatcher(DatabaseNotificationEmitter(), background=False)
        >>> dispatcher.notify(MessageKind.PROJECT_STATUS, user_id, context, {"project_id": pid})
    """

    def __init__(
        self,
        emitter: NotificationEmitter,
        renderer: Optional[MessageRenderer] = None,
        background: bool = True,
        max_workers: int = 2,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize the dispatcher.

        Args:
            emitter: Port that records notifications
            renderer: Message renderer (creates default if None)
            background: Emit on a worker thread instead of inline
            max_workers: Size of the worker pool when background is enabled
            logger_instance: Logger instance (uses module logger if None)
        """
        self.emitter = emitter
        self.renderer = renderer or MessageRenderer()
        self.background = background
        self.logger = logger_instance or logger
        self._executor: Optional[ThreadPoolExecutor] = None
        if background:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="notify"
            )

    def notify(
        self,
        kind: MessageKind,
        user_id: Optional[str],
        context: Dict[str, Any],
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[Future]:
        """Render and emit one notification; never raises.

        Args:
            kind: Message kind selecting the templates and notification type
            user_id: Recipient; nothing is sent when None
            context: Template variables
            data: Entity ids stored with the notification

        Returns:
            The pending Future when dispatched in the background, else None
        """
        if not user_id:
            self.logger.warning(
                f"Dropping {kind.value} notification without recipient",
                extra={"event": "notification.skip", "reason": "no_recipient"},
            )
            return None

        try:
            title, message = self.renderer.render(kind, context)
        except Exception as e:
            self.logger.error(
                f"Failed to render {kind.value} notification: {e}",
                extra={"event": "notification.render.failed", "error_type": type(e).__name__},
            )
            return None

        outgoing = OutgoingNotification(
            kind=kind, user_id=user_id, title=title, message=message, data=dict(data or {})
        )

        if self._executor is None:
            self._emit_safely(outgoing)
            return None

        # Worker threads see the caller's log context
        ctx = contextvars.copy_context()
        try:
            return self._executor.submit(ctx.run, self._emit_safely, outgoing)
        except RuntimeError as e:
            # Executor already shut down
            self.logger.error(
                f"Failed to schedule {kind.value} notification: {e}",
                extra={"event": "notification.emit.failed", "error_type": type(e).__name__},
            )
            return None

    def _emit_safely(self, outgoing: OutgoingNotification) -> None:
        try:
            self.emitter.emit(
                outgoing.user_id,
                outgoing.type,
                outgoing.title,
                outgoing.message,
                outgoing.data,
            )
            self.logger.info(
                f"Notification {outgoing.kind.value} emitted to user {outgoing.user_id}",
                extra={"event": "notification.emitted", "notification_kind": outgoing.kind.value},
            )
        except Exception as e:
            self.logger.error(
                f"Failed to emit {outgoing.kind.value} notification to {outgoing.user_id}: {e}",
                exc_info=True,
                extra={"event": "notification.emit.failed", "error_type": type(e).__name__},
            )

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker pool, waiting for queued notifications by default."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def create_dispatcher(
    config: NotificationsConfig, emitter: Optional[NotificationEmitter] = None
) -> NotificationDispatcher:
    """Build a dispatcher from configuration, storing notifications in the database by default."""
    return NotificationDispatcher(
        emitter or DatabaseNotificationEmitter(),
        background=config.background,
        max_workers=config.max_workers,
    )
