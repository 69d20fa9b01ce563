"""Best-effort notification dispatch for a run."""

from typing import Any, Optional

import structlog

from ..config.notification import NotificationConfig, NotificationMethod
from ..errors import NotificationPermanentError
from ..models.chain import ChainConfig
from ..models.settlement import RunSummary, SettlementRoundResult
from .base import BaseNotifier, DeliveryResult, DeliveryStatus, Notification
from .email import EmailNotifier
from .messages import (
    error_message,
    no_obligations_message,
    success_message,
    summary_message,
    test_message,
)
from .rate_limit import RateLimitGate
from .stdout import StdoutNotifier

logger = structlog.get_logger(__name__)


def create_notifier(destination) -> BaseNotifier:
    """Instantiate the channel for a configured destination."""
    if destination.method == NotificationMethod.EMAIL:
        return EmailNotifier(destination.name, destination.config)
    if destination.method == NotificationMethod.STDOUT:
        return StdoutNotifier(destination.name, destination.config)
    raise ValueError(f"Unsupported notification method: {destination.method}")


class NotificationService:
    """
    Sends the caller's messages to every configured channel.

    Every delivery attempt, retries included, goes through one shared
    RateLimitGate. Failures are logged and never raised: a notification
    problem must not fail a run.
    """

    def __init__(
        self,
        notifiers: Optional[list[BaseNotifier]] = None,
        gate: Optional[RateLimitGate] = None,
        retry_attempts: int = 2,
        retry_delay_seconds: int = 1
    ):
        self.notifiers = notifiers or []
        self.gate = gate or RateLimitGate()
        self.retry_attempts = retry_attempts
        self.retry_delay_seconds = retry_delay_seconds

    @classmethod
    def create(cls, config: NotificationConfig) -> "NotificationService":
        """Build the service from notification configuration."""
        notifiers = []
        retry_attempts = 2
        retry_delay_seconds = 1

        for destination in config.destinations:
            if not destination.enabled:
                continue
            try:
                notifiers.append(create_notifier(destination))
            except (NotificationPermanentError, ValueError) as e:
                logger.error(
                    "Skipping notification channel with invalid configuration",
                    notifier=destination.name,
                    error=str(e)
                )
                continue
            if destination.method == NotificationMethod.EMAIL:
                retry_attempts = destination.config.retry_attempts
                retry_delay_seconds = destination.config.retry_delay_seconds

        if not notifiers:
            logger.warning("Notification configuration incomplete - notifications will be disabled")

        return cls(
            notifiers=notifiers,
            gate=RateLimitGate(config.min_interval_ms),
            retry_attempts=retry_attempts,
            retry_delay_seconds=retry_delay_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.notifiers)

    def send(self, notification: Notification) -> list[DeliveryResult]:
        """Deliver to every channel; never raises."""
        results = []

        for notifier in self.notifiers:
            try:
                result = notifier.deliver_with_retry(
                    notification,
                    max_retries=self.retry_attempts,
                    retry_delay=self.retry_delay_seconds,
                    before_attempt=self.gate.wait,
                )
            except Exception as e:
                logger.error(
                    "Notification failed",
                    notifier=notifier.name,
                    kind=notification.kind.value,
                    chain=notification.chain,
                    error=str(e)
                )
                result = DeliveryResult(status=DeliveryStatus.FAILED, message=str(e), error=e)

            if result.status != DeliveryStatus.SUCCESS:
                logger.error(
                    "Notification not delivered",
                    notifier=notifier.name,
                    kind=notification.kind.value,
                    chain=notification.chain,
                    status=result.status.value,
                    reason=result.message
                )
            results.append(result)

        return results

    def _send_built(self, build, *args, **kwargs) -> list[DeliveryResult]:
        if not self.notifiers:
            return []
        try:
            notification = build(*args, **kwargs)
        except Exception as e:
            logger.error("Failed to render notification", builder=build.__name__, error=str(e))
            return []
        return self.send(notification)

    def notify_success(self, chain: ChainConfig, result: SettlementRoundResult) -> list[DeliveryResult]:
        return self._send_built(success_message, chain, result)

    def notify_no_obligations(
        self,
        chain: ChainConfig,
        current_day: int,
        next_unchecked_day: int
    ) -> list[DeliveryResult]:
        return self._send_built(no_obligations_message, chain, current_day, next_unchecked_day)

    def notify_error(
        self,
        chain: ChainConfig,
        error_type: str,
        message: str,
        details: Optional[dict[str, Any]] = None
    ) -> list[DeliveryResult]:
        return self._send_built(error_message, chain.label, error_type, message, details, chain=chain.name)

    def notify_summary(self, summary: RunSummary) -> list[DeliveryResult]:
        return self._send_built(summary_message, summary)

    def send_test(self) -> bool:
        """Send a test message; True if every channel accepted it."""
        results = self._send_built(test_message)
        return bool(results) and all(r.status == DeliveryStatus.SUCCESS for r in results)
