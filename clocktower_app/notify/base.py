"""Base classes for notification channels."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from ..errors import NotificationPermanentError, NotificationRetryableError


class NotificationKind(Enum):
    """Kinds of messages the caller sends."""
    SUCCESS = "success"
    NO_OBLIGATIONS = "no_obligations"
    ERROR = "error"
    SUMMARY = "summary"
    TEST = "test"


@dataclass(frozen=True)
class Notification:
    """A rendered message ready for any channel."""
    kind: NotificationKind
    subject: str
    html: str
    text: str
    chain: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


class DeliveryStatus(Enum):
    """Notification delivery status."""
    SUCCESS = "success"
    FAILED = "failed"
    DEAD_LETTER = "dead_letter"


@dataclass
class DeliveryResult:
    """Result of a notification delivery attempt."""
    status: DeliveryStatus
    message: Optional[str] = None
    attempt_count: int = 1
    delivery_time_ms: Optional[int] = None
    error: Optional[Exception] = None


class BaseNotifier(ABC):
    """Base class for notification channels."""

    def __init__(self, name: str, config: Any):
        self.name = name
        self.config = config
        self.logger = structlog.get_logger(f"notify.{name}")

    @abstractmethod
    def deliver(self, notification: Notification) -> DeliveryResult:
        """
        Deliver one notification to the configured destination.

        Raises:
            NotificationRetryableError: Transient failure, worth retrying
            NotificationPermanentError: Failure that retrying cannot fix
        """
        pass

    def deliver_with_retry(
        self,
        notification: Notification,
        max_retries: int = 2,
        retry_delay: int = 1,
        before_attempt: Optional[Callable[[], Any]] = None
    ) -> DeliveryResult:
        """
        Deliver a notification with retry logic.

        Args:
            notification: Message to deliver
            max_retries: Maximum number of retry attempts
            retry_delay: Delay between retries in seconds
            before_attempt: Called before every attempt, retries included;
                the notification service passes its rate-limit gate here

        Returns:
            Final delivery result; never raises for delivery failures
        """
        attempt = 0
        last_error: Optional[Exception] = None

        while attempt <= max_retries:
            try:
                if before_attempt is not None:
                    before_attempt()
                start_time = time.time()
                result = self.deliver(notification)
                delivery_time = int((time.time() - start_time) * 1000)

                if result.status == DeliveryStatus.SUCCESS:
                    result.delivery_time_ms = delivery_time
                    result.attempt_count = attempt + 1
                    return result

                # Delivery failed but didn't raise exception
                last_error = result.error

            except NotificationPermanentError as e:
                # Don't retry permanent errors
                return DeliveryResult(
                    status=DeliveryStatus.FAILED,
                    message=f"Permanent error: {str(e)}",
                    attempt_count=attempt + 1,
                    error=e
                )

            except NotificationRetryableError as e:
                last_error = e

            except Exception as e:
                # Unknown error - treat as retryable
                last_error = e

            attempt += 1

            if attempt <= max_retries:
                self.logger.warning(
                    "Notification attempt failed, retrying",
                    notifier=self.name,
                    attempt=attempt,
                    retry_delay=retry_delay,
                    error=str(last_error)
                )
                time.sleep(retry_delay)

        # Max retries exceeded
        return DeliveryResult(
            status=DeliveryStatus.DEAD_LETTER,
            message=f"Max retries exceeded: {str(last_error)}",
            attempt_count=attempt,
            error=last_error
        )
