"""Template rendering for notification messages using Jinja2.

Each message kind has a one-line subject template (the notification title)
and a plain-text body template (the notification message) in the
``message_templates`` directory of this package.
"""

import logging
from typing import Any, Dict, Tuple

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from .models import MessageKind, NotificationTemplateError

logger = logging.getLogger(__name__)


class MessageRenderer:
    """Renders notification titles and messages.

    Templates are cached by the Jinja2 environment after first use. Missing
    variables raise instead of rendering as empty strings.
    """

    def __init__(self, template_dir: str = "message_templates"):
        """Initialize renderer with a Jinja2 environment.

        Args:
            template_dir: Directory name within the marketplace.notifications package
        """
        self.env = Environment(
            loader=PackageLoader("marketplace.notifications", template_dir),
            autoescape=False,  # plain text, never rendered as HTML here
            undefined=StrictUndefined,
        )

        logger.debug(f"Initialized MessageRenderer with templates from {template_dir}")

    def render(self, kind: MessageKind, context: Dict[str, Any]) -> Tuple[str, str]:
        """Render the title and message of one notification.

        Args:
            kind: Message kind selecting the templates
            context: Template variables

        Returns:
            Tuple of (title, message), both stripped; the title is a single line

        Raises:
            NotificationTemplateError: If a template is missing or rendering fails
        """
        try:
            subject_template = self.env.get_template(f"{kind.value}_subject.j2")
            body_template = self.env.get_template(f"{kind.value}_body.txt.j2")

            title = subject_template.render(context).strip().replace("\n", " ")
            message = body_template.render(context).strip()
            return title, message

        except TemplateError as e:
            error_msg = f"Template rendering failed for {kind.value}: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e
