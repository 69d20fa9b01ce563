"""
System failure error classifications for unrecoverable errors.

These exceptions represent failures that stop a chain's pipeline for the
current run, or collaborator failures that are logged and swallowed where
they occur.
"""

from typing import Optional, Dict, Any


class SystemFailureError(Exception):
    """Base class for unrecoverable system failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class PrecheckError(SystemFailureError):
    """The ledger's next-unchecked-day cursor could not be determined."""

    def __init__(self, message: str, chain: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.chain = chain


class SettlementSubmissionError(SystemFailureError):
    """A settlement call could not be submitted or confirmed."""

    def __init__(self, message: str, round_index: Optional[int] = None,
                 transaction_ref: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.round_index = round_index
        self.transaction_ref = transaction_ref


class PersistenceError(SystemFailureError):
    """Database persistence failures."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.target = target


class NotificationError(SystemFailureError):
    """Notification delivery failures."""

    def __init__(self, message: str, notifier: Optional[str] = None,
                 kind: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.notifier = notifier
        self.kind = kind


class NotificationRetryableError(NotificationError):
    """Notification failure that may succeed on a later attempt."""
    pass


class NotificationPermanentError(NotificationError):
    """Notification failure that should not be retried."""
    pass


class ConfigurationError(SystemFailureError):
    """Invalid or incomplete configuration."""

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
