"""
Ledger error classifications for RPC reads.

These exceptions describe transient failures of the ledger RPC layer. A scan
treats them as "zero obligations for this call" and keeps going.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for ledger RPC failures that can be handled gracefully."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class LedgerReadError(LedgerError):
    """A single read call against a contract failed."""

    def __init__(self, message: str, contract: Optional[str] = None,
                 function: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.contract = contract
        self.function = function


class BatchReadError(LedgerError):
    """A whole batch of read calls could not be executed."""

    def __init__(self, message: str, batch_size: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.batch_size = batch_size
