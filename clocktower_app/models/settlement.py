"""
Settlement planning and outcome models.

Defines the recursion plan, per-round results, the per-chain pipeline states
and the run-level summary consumed by persistence and notification.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional


class PipelineState(str, Enum):
    """Per-chain pipeline states."""
    IDLE = "idle"
    PRECHECK = "precheck"
    NO_OBLIGATIONS = "no_obligations"
    PLANNING = "planning"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


class ChainStatus(str, Enum):
    """Final status of one chain for one run."""
    EXECUTED = "executed"
    NO_OBLIGATIONS_DUE = "no_obligations_due"
    FAILED = "failed"


@dataclass(frozen=True)
class RecursionPlan:
    """How many settlement rounds to attempt for one chain in one run."""
    total_obligations: int
    per_call_capacity: int
    expected_rounds: int
    bounded_rounds: int
    hard_ceiling: int

    @property
    def capped(self) -> bool:
        """The hard ceiling cut the expected number of rounds."""
        return self.bounded_rounds < self.expected_rounds


@dataclass(frozen=True)
class TokenBalanceChange:
    """Before/after balance of one tracked token around a round."""
    address: str
    symbol: str
    name: str
    decimals: int
    before: Decimal
    after: Decimal

    @property
    def delta(self) -> Decimal:
        return self.after - self.before


@dataclass(frozen=True)
class SettlementRoundResult:
    """Everything observed during one settlement round."""
    round_index: int
    succeeded: bool
    transaction_ref: Optional[str] = None
    failure_reason: Optional[str] = None     # Ledger-reported failure (reverted)
    fault: Optional[str] = None              # Round could not be submitted/confirmed
    resource_used: Optional[int] = None
    native_balance_before: Optional[Decimal] = None
    native_balance_after: Optional[Decimal] = None
    token_balances: tuple[TokenBalanceChange, ...] = field(default_factory=tuple)
    bound_reached: bool = False
    elapsed_ms: int = 0

    @property
    def error_message(self) -> Optional[str]:
        """Failure description for a round that did not succeed."""
        if self.succeeded:
            return None
        return self.fault or self.failure_reason


@dataclass(frozen=True)
class ChainOutcome:
    """Outcome of one chain's pipeline for one run."""
    chain: str
    status: ChainStatus
    rounds_executed: int = 0
    rounds_succeeded: int = 0
    error: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class RunSummary:
    """Aggregated outcomes of a scheduled invocation."""
    run_id: str
    outcomes: tuple[ChainOutcome, ...]
    elapsed_ms: int = 0

    def _count(self, status: ChainStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def executed(self) -> int:
        return self._count(ChainStatus.EXECUTED)

    @property
    def no_obligations(self) -> int:
        return self._count(ChainStatus.NO_OBLIGATIONS_DUE)

    @property
    def failed(self) -> int:
        return self._count(ChainStatus.FAILED)

    @property
    def failed_chains(self) -> list[str]:
        return [o.chain for o in self.outcomes if o.status == ChainStatus.FAILED]

    @property
    def exit_code(self) -> int:
        """Non-zero if and only if at least one chain failed."""
        return 1 if self.failed > 0 else 0
