"""
Due-day scheduling models.

The ledger indexes subscriptions by (frequency code, due day). These types
carry that mapping for one calendar day.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class FrequencyClass(IntEnum):
    """Subscription frequencies; values are the codes the ledger understands."""
    WEEKLY = 0
    MONTHLY = 1
    QUARTERLY = 2
    YEARLY = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class DueDayResult:
    """Due-day value for one (frequency, day index) pair."""
    frequency: int
    due_day: Optional[int]
    skip: bool = False
    skip_reason: Optional[str] = None


ZERO_OBLIGATION_ID = bytes(32)


def normalize_obligation_id(value: object) -> bytes:
    """
    Normalise an obligation id returned by a ledger client to raw bytes.

    Clients may return ``bytes``/``HexBytes`` or a ``0x``-prefixed hex string.
    Comparison against ``ZERO_OBLIGATION_ID`` is always done on the result of
    this function, never by truthiness.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        return bytes.fromhex(text)
    raise TypeError(f"Unsupported obligation id type: {type(value).__name__}")


def is_active_obligation(value: object) -> bool:
    """True when the id denotes an active obligation (non-zero slot)."""
    return normalize_obligation_id(value) != ZERO_OBLIGATION_ID


@dataclass(frozen=True)
class ScanResult:
    """Outcome of scanning a day range for outstanding obligations."""
    any_due: bool
    total_obligations: int
    calls_issued: int = 0
    calls_failed: int = 0
    exhaustive: bool = True


@dataclass(frozen=True)
class PrecheckResult:
    """Result of the per-chain precheck."""
    should_proceed: bool
    current_day: int
    next_unchecked_day: int
    scan: Optional[ScanResult] = None

    @property
    def up_to_date(self) -> bool:
        """The ledger cursor is already past today."""
        return self.current_day < self.next_unchecked_day
