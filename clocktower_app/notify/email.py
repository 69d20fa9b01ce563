"""Email notifications through the Resend HTTP API."""

import json
import socket
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from ..config.notification import EmailNotificationConfig
from ..errors import NotificationPermanentError, NotificationRetryableError
from .base import BaseNotifier, DeliveryResult, DeliveryStatus, Notification


class EmailNotifier(BaseNotifier):
    """Sends each notification as one HTML email."""

    def __init__(self, name: str, config: EmailNotificationConfig):
        super().__init__(name, config)
        self.config: EmailNotificationConfig = config

        # Validate URL
        parsed = urlparse(config.api_url)
        if not parsed.scheme or not parsed.netloc:
            raise NotificationPermanentError(f"Invalid URL: {config.api_url}", notifier=name)

    def _build_payload(self, notification: Notification) -> bytes:
        return json.dumps({
            "from": self.config.sender,
            "to": [self.config.recipient],
            "subject": notification.subject,
            "html": notification.html,
        }).encode("utf-8")

    def deliver(self, notification: Notification) -> DeliveryResult:
        """POST the notification to the email API."""
        kind = notification.kind.value
        data = self._build_payload(notification)
        headers = {
            "Content-Type": "application/json",
            "Content-Length": str(len(data)),
            "Authorization": f"Bearer {self.config.api_key}",
            "User-Agent": "clocktower-caller/0.1",
        }

        req = Request(self.config.api_url, data=data, headers=headers, method="POST")

        try:
            with urlopen(req, timeout=self.config.timeout_seconds) as response:
                response_code = response.getcode()
                response_data = response.read().decode("utf-8")

        except HTTPError as e:
            error_msg = f"HTTP {e.code}: {e.reason}"
            self.logger.warning(
                "Email API returned an error",
                notifier=self.name,
                kind=kind,
                error_code=e.code,
                error_reason=str(e.reason)
            )

            # Rate limiting and server errors are retryable
            if e.code == 429 or e.code >= 500:
                raise NotificationRetryableError(error_msg, notifier=self.name, kind=kind) from e
            raise NotificationPermanentError(error_msg, notifier=self.name, kind=kind) from e

        except (OSError, URLError, socket.timeout) as e:
            self.logger.warning(
                "Email API network error",
                notifier=self.name,
                kind=kind,
                error=str(e)
            )
            raise NotificationRetryableError(
                f"Network error: {str(e)}", notifier=self.name, kind=kind
            ) from e

        if not 200 <= response_code < 300:
            error_msg = f"HTTP {response_code}: {response_data[:200]}"
            if response_code == 429 or response_code >= 500:
                raise NotificationRetryableError(error_msg, notifier=self.name, kind=kind)
            raise NotificationPermanentError(error_msg, notifier=self.name, kind=kind)

        try:
            body = json.loads(response_data)
        except ValueError:
            body = {}
        message_id = body.get("id") if isinstance(body, dict) else None

        self.logger.info(
            "Email sent",
            notifier=self.name,
            kind=kind,
            chain=notification.chain,
            message_id=message_id
        )
        return DeliveryResult(
            status=DeliveryStatus.SUCCESS,
            message=f"HTTP {response_code}: {message_id or response_data[:100]}"
        )
