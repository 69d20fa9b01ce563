"""Standard output notification channel."""

import json
import sys
from datetime import datetime, timezone
from typing import Optional, TextIO

from ..config.notification import StdoutNotificationConfig
from .base import BaseNotifier, DeliveryResult, DeliveryStatus, Notification


class StdoutNotifier(BaseNotifier):
    """
    Prints notifications, for dry runs and cron mail.

    Each notification is written as one block to ``stream`` (stdout unless
    given). Logging about the send happens before the write, so a JSON
    consumer reading the stream sees whole notification lines.
    """

    def __init__(self, name: str, config: StdoutNotificationConfig, stream: Optional[TextIO] = None):
        super().__init__(name, config)
        self.config: StdoutNotificationConfig = config
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def deliver(self, notification: Notification) -> DeliveryResult:
        """Print the notification to the output stream."""
        self.logger.debug(
            "Printing notification",
            notifier=self.name,
            kind=notification.kind.value,
            format=self.config.format
        )

        print(self._format(notification), file=self.stream, flush=True)

        return DeliveryResult(
            status=DeliveryStatus.SUCCESS,
            message="Printed to stdout"
        )

    def _format(self, notification: Notification) -> str:
        if self.config.format == "json":
            return json.dumps({
                "kind": notification.kind.value,
                "chain": notification.chain,
                "subject": notification.subject,
                "details": notification.details,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }, default=str)

        return f"[{datetime.now(timezone.utc).isoformat()}] {notification.subject}\n{notification.text}"
