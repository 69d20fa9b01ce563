"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import Mock

import pytest
import structlog

from clocktower_app.config.defaults import EngineParams
from clocktower_app.errors import BatchReadError, LedgerReadError
from clocktower_app.ledger.base import CallResult, FinalityReceipt, LedgerClient, ReadCall
from clocktower_app.models.chain import ChainConfig, TokenConfig
from clocktower_app.models.context import ChainContext
from clocktower_app.notify.service import NotificationService

LEDGER_ADDRESS = "0x1111111111111111111111111111111111111111"
USDC_ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
CALLER_ADDRESS = "0x2222222222222222222222222222222222222222"


def obligation_id(n: int) -> bytes:
    """A non-zero 32-byte obligation id."""
    return n.to_bytes(32, "big")


def day_start(day_index: int) -> datetime:
    """Noon UTC on a given day index."""
    return datetime(1970, 1, 1, 12, tzinfo=timezone.utc) + timedelta(days=day_index)


class FakeLedger(LedgerClient):
    """
    In-memory ledger.

    ``obligations`` maps (frequency code, due day) to the ids getIdByTime
    returns. ``write_outcomes`` is consumed one entry per write call:
    "success", "revert", or an exception instance to raise.
    """

    def __init__(
        self,
        next_unchecked_day: int = 0,
        obligations: Optional[dict[tuple[int, int], list[bytes]]] = None,
        max_remits: int = 100,
        write_outcomes: Optional[list[Any]] = None
    ):
        self.next_unchecked_day = next_unchecked_day
        self.obligations = obligations or {}
        self.max_remits = max_remits
        self.write_outcomes = list(write_outcomes or [])
        self.failing_reads: set[tuple[int, int]] = set()
        self.failing_batches: set[int] = set()
        self.cursor_error: Optional[Exception] = None
        self.diagnose_error: Optional[Exception] = None
        self.revert_reason = "Insufficient allowance"
        self.native_balance = 2 * 10**18
        self.token_balances = {USDC_ADDRESS: 500_000_000}
        self.gas_used = 84_000

        self.read_calls: list[tuple[str, tuple]] = []
        self.batches: list[list[ReadCall]] = []
        self.writes: list[str] = []
        self._pending: dict[str, str] = {}

    def read_call(self, contract: str, function: str, args: tuple = ()) -> Any:
        self.read_calls.append((function, args))
        if function == "nextUncheckedDay":
            if self.cursor_error:
                raise self.cursor_error
            return self.next_unchecked_day
        if function == "maxRemits":
            return self.max_remits
        if function == "getIdByTime":
            return self.obligations.get(tuple(args), [])
        if function == "balanceOf":
            return self.token_balances.get(contract, 0)
        raise LedgerReadError(f"unknown function {function}", function=function)

    def batch_read_call(self, calls: list[ReadCall]) -> list[CallResult]:
        index = len(self.batches)
        self.batches.append(list(calls))
        if index in self.failing_batches:
            raise BatchReadError("multicall reverted", batch_size=len(calls))

        results = []
        for call in calls:
            if tuple(call.args) in self.failing_reads:
                results.append(CallResult(success=False, error="call reverted"))
            else:
                results.append(CallResult(success=True, value=self.obligations.get(tuple(call.args), [])))
        return results

    def write_call(self, contract: str, function: str, args: tuple, gas_limit: int) -> str:
        outcome = self.write_outcomes.pop(0) if self.write_outcomes else "success"
        if isinstance(outcome, Exception):
            raise outcome

        tx_hash = "0x" + f"{len(self.writes) + 1:064x}"
        self.writes.append(tx_hash)
        self._pending[tx_hash] = outcome

        # Gas is paid either way; remitted tokens only arrive on success
        self.native_balance -= 10**15
        if outcome == "success":
            self.token_balances[USDC_ADDRESS] += 1_500_000
        return tx_hash

    def wait_for_finality(self, transaction_ref: str) -> FinalityReceipt:
        return FinalityReceipt(
            transaction_ref=transaction_ref,
            succeeded=self._pending[transaction_ref] == "success",
            resource_used=self.gas_used,
            block_number=1,
        )

    def get_balance(self, account: str) -> int:
        return self.native_balance

    def diagnose_failure(self, transaction_ref: str) -> Optional[str]:
        if self.diagnose_error:
            raise self.diagnose_error
        return self.revert_reason


@pytest.fixture
def chain_config() -> ChainConfig:
    """Base mainnet configuration with one tracked token."""
    return ChainConfig(
        name="base",
        chain_id=8453,
        rpc_url="https://base-mainnet.example/v2/",
        ledger_address=LEDGER_ADDRESS,
        tokens=(TokenConfig(address=USDC_ADDRESS, symbol="USDC", name="USD Coin", decimals=6),),
        display_name="Base",
        explorer_url="https://basescan.org/tx/{tx_hash}",
    )


@pytest.fixture
def engine_params() -> EngineParams:
    return EngineParams(scan_batch_size=50, max_recursion_depth=5)


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def make_context(chain_config, engine_params):
    """Factory building a ChainContext around a ledger."""
    def _make(ledger: LedgerClient, chain: Optional[ChainConfig] = None,
              params: Optional[EngineParams] = None) -> ChainContext:
        chain = chain or chain_config
        return ChainContext(
            chain=chain,
            ledger=ledger,
            caller_address=CALLER_ADDRESS,
            run_id="run_test",
            execution_id=f"exec_{chain.name}_test",
            params=params or engine_params,
            logger=structlog.get_logger("tests").bind(chain=chain.name),
        )
    return _make


@pytest.fixture
def notifier() -> Mock:
    """Notification service double recording every call."""
    return Mock(spec=NotificationService)
