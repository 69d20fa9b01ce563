"""
Error classification for the Clocktower caller.

Ledger errors are transient and tolerated where a scan can continue without
them; system failures abort the chain pipeline they occur in, or are caught
and logged at the call site when they come from a collaborator (store or
notifier).
"""

from .ledger import (
    LedgerError,
    LedgerReadError,
    BatchReadError,
)
from .system_failures import (
    SystemFailureError,
    PrecheckError,
    SettlementSubmissionError,
    PersistenceError,
    NotificationError,
    NotificationRetryableError,
    NotificationPermanentError,
    ConfigurationError,
)

__all__ = [
    # Ledger Errors
    "LedgerError",
    "LedgerReadError",
    "BatchReadError",
    # System Failures
    "SystemFailureError",
    "PrecheckError",
    "SettlementSubmissionError",
    "PersistenceError",
    "NotificationError",
    "NotificationRetryableError",
    "NotificationPermanentError",
    "ConfigurationError",
]
