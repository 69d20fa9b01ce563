"""Ledger RPC capability consumed by the settlement engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class ReadCall:
    """One read-only contract call."""
    contract: str
    function: str
    args: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class CallResult:
    """Result of one call inside a batch; failures carry an error message."""
    success: bool
    value: Any = None
    error: Optional[str] = None


@dataclass(frozen=True)
class FinalityReceipt:
    """Authoritative outcome of a submitted write call."""
    transaction_ref: str
    succeeded: bool                # Ledger status field, never inferred
    resource_used: Optional[int] = None
    block_number: Optional[int] = None


class LedgerClient(ABC):
    """
    Narrow ledger capability used by the scanner and executor.

    Implementations raise ``LedgerError`` subclasses for transient read
    failures and ``SettlementSubmissionError`` when a write call cannot be
    submitted or confirmed.
    """

    @abstractmethod
    def read_call(self, contract: str, function: str, args: tuple = ()) -> Any:
        """Execute a read-only contract call and return its decoded value."""
        pass

    @abstractmethod
    def batch_read_call(self, calls: list[ReadCall]) -> list[CallResult]:
        """
        Execute several read calls in one request.

        Individual call failures are reported in the returned list rather
        than raised. Raises ``BatchReadError`` when the batch as a whole
        could not be executed.
        """
        pass

    @abstractmethod
    def write_call(self, contract: str, function: str, args: tuple, gas_limit: int) -> str:
        """Sign and submit a state-changing call; returns the transaction reference."""
        pass

    @abstractmethod
    def wait_for_finality(self, transaction_ref: str) -> FinalityReceipt:
        """Block until the transaction is final or the client's timeout expires."""
        pass

    @abstractmethod
    def get_balance(self, account: str) -> int:
        """Native currency balance of an account in base units."""
        pass

    def diagnose_failure(self, transaction_ref: str) -> Optional[str]:
        """
        Best-effort human readable reason for a failed transaction.

        Returns None when no reason can be recovered.
        """
        return None

    def token_balance(self, token: str, account: str) -> int:
        """Balance of an ERC-20 token held by an account, in base units."""
        return int(self.read_call(token, "balanceOf", (account,)))
