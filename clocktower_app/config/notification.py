"""Configuration for notification channels."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

DEFAULT_SENDER = "onboarding@resend.dev"


class NotificationMethod(Enum):
    """Supported notification channels."""
    EMAIL = "email"
    STDOUT = "stdout"


@dataclass(frozen=True)
class EmailNotificationConfig:
    """Configuration for the email API channel."""
    api_key: str
    recipient: str
    sender: str = DEFAULT_SENDER
    api_url: str = "https://api.resend.com/emails"
    timeout_seconds: int = 30
    retry_attempts: int = 2
    retry_delay_seconds: int = 1


@dataclass(frozen=True)
class StdoutNotificationConfig:
    """Configuration for stdout notifications."""
    format: str = "text"  # text, json


@dataclass(frozen=True)
class NotificationDestination:
    """Single notification destination."""
    name: str
    method: NotificationMethod
    config: Any  # EmailNotificationConfig | StdoutNotificationConfig
    enabled: bool = True


@dataclass(frozen=True)
class NotificationConfig:
    """Complete notification configuration."""
    destinations: list[NotificationDestination]
    min_interval_ms: int = 500


def create_email_destination(
    api_key: Optional[str],
    recipient: Optional[str],
    sender: Optional[str] = None,
    **kwargs
) -> Optional[NotificationDestination]:
    """Create the email destination, or None when credentials are incomplete."""
    if not api_key or not recipient:
        return None

    return NotificationDestination(
        name="email",
        method=NotificationMethod.EMAIL,
        config=EmailNotificationConfig(
            api_key=api_key,
            recipient=recipient,
            sender=sender or DEFAULT_SENDER,
            **kwargs
        ),
    )
