"""Tests for execution history persistence."""

import sqlite3
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest

from clocktower_app.errors import PersistenceError
from clocktower_app.models.chain import TokenConfig
from clocktower_app.models.settlement import TokenBalanceChange
from clocktower_app.persistence.execution_store import ExecutionRecord, ExecutionStore


def make_record(execution_id: str, chain: str = "base", **kwargs) -> ExecutionRecord:
    return ExecutionRecord(
        execution_id=execution_id,
        chain_name=chain,
        chain_display_name=chain.title(),
        precheck_passed=True,
        **kwargs
    )


class TestExecutionStore:
    """Execution log storage and queries."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "nested" / "clocktower.db"
        self.store = ExecutionStore(str(self.db_path))

    def test_database_initialization(self):
        """Creates the database file, parent directories and tables."""
        assert self.db_path.exists()

        with sqlite3.connect(self.db_path) as conn:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"tokens", "execution_logs", "token_balances", "run_leases"} <= tables

    def test_reopen_is_idempotent(self):
        self.store.log_execution(make_record("exec_1"))
        reopened = ExecutionStore(str(self.db_path))
        assert len(reopened.get_recent_executions()) == 1

    def test_log_execution_roundtrip(self):
        row_id = self.store.log_execution(make_record(
            "exec_base_1_round_0",
            run_id="run_1",
            tx_hash="0xabc",
            tx_status=1,
            gas_used=84_000,
            recursion_depth=0,
            max_recursion_reached=True,
            execution_time_ms=1200,
        ))

        assert row_id > 0
        row = self.store.get_recent_executions()[0]
        assert row["execution_id"] == "exec_base_1_round_0"
        assert row["run_id"] == "run_1"
        assert row["tx_status"] == 1
        assert row["max_recursion_reached"] == 1
        assert row["timestamp"] is not None

    def test_duplicate_execution_id_raises(self):
        self.store.log_execution(make_record("exec_dup"))
        with pytest.raises(PersistenceError) as exc_info:
            self.store.log_execution(make_record("exec_dup"))
        assert exc_info.value.target == "execution_logs"

    def test_recent_executions_newest_first_and_filtered(self):
        self.store.log_execution(make_record("a", timestamp="2024-01-30T10:00:00+00:00"))
        self.store.log_execution(make_record("b", chain="arbitrum", timestamp="2024-01-30T11:00:00+00:00"))
        self.store.log_execution(make_record("c", timestamp="2024-01-30T12:00:00+00:00"))

        assert [r["execution_id"] for r in self.store.get_recent_executions()] == ["c", "b", "a"]
        assert [r["execution_id"] for r in self.store.get_recent_executions(chain_name="base")] == ["c", "a"]
        assert len(self.store.get_recent_executions(limit=1)) == 1

    def test_execution_stats(self):
        self.store.log_execution(make_record("a", tx_status=1, execution_time_ms=100))
        self.store.log_execution(make_record("b", tx_status=0, execution_time_ms=300))
        self.store.log_execution(make_record("c", chain="arbitrum", tx_status=1, execution_time_ms=50))

        stats = self.store.get_execution_stats("base")
        assert stats["total_executions"] == 2
        assert stats["successful_txs"] == 1
        assert stats["avg_execution_time"] == 200

        assert self.store.get_execution_stats()["total_executions"] == 3

    def test_empty_stats(self):
        stats = self.store.get_execution_stats()
        assert stats["total_executions"] == 0
        assert stats["successful_txs"] == 0
        assert stats["last_execution"] is None


class TestTokenBalances:
    """Token registry and per-round balances."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = ExecutionStore(str(Path(self.temp_dir) / "clocktower.db"))
        self.usdc = TokenConfig(address="0xusdc", symbol="USDC", name="USD Coin", decimals=6)

    def test_get_or_create_token_is_stable(self):
        first = self.store.get_or_create_token(self.usdc, "base")
        second = self.store.get_or_create_token(self.usdc, "base")
        other_chain = self.store.get_or_create_token(self.usdc, "arbitrum")

        assert first == second
        assert other_chain != first

    def test_log_token_balance(self):
        row_id = self.store.log_execution(make_record("exec_1"))
        change = TokenBalanceChange(address="0xusdc", symbol="USDC", name="USD Coin", decimals=6,
                                    before=Decimal("500"), after=Decimal("501.5"))

        self.store.log_token_balance(row_id, "base", change)

        balances = self.store.get_token_balances(row_id)
        assert balances == [{
            "token_symbol": "USDC",
            "token_address": "0xusdc",
            "balance_before": 500.0,
            "balance_after": 501.5,
        }]


class TestRunLeases:
    """Per-(chain, day) run lease."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = ExecutionStore(str(Path(self.temp_dir) / "clocktower.db"))

    def test_first_holder_wins(self):
        assert self.store.acquire_lease("base", 19752, "run_a", 3600, now=1000.0)
        assert not self.store.acquire_lease("base", 19752, "run_b", 3600, now=1001.0)

    def test_same_holder_reacquires(self):
        assert self.store.acquire_lease("base", 19752, "run_a", 3600, now=1000.0)
        assert self.store.acquire_lease("base", 19752, "run_a", 3600, now=1001.0)

    def test_leases_are_per_chain_and_day(self):
        assert self.store.acquire_lease("base", 19752, "run_a", 3600, now=1000.0)
        assert self.store.acquire_lease("arbitrum", 19752, "run_b", 3600, now=1000.0)
        assert self.store.acquire_lease("base", 19753, "run_b", 3600, now=1000.0)

    def test_expired_lease_can_be_taken(self):
        assert self.store.acquire_lease("base", 19752, "run_a", 60, now=1000.0)
        assert self.store.acquire_lease("base", 19752, "run_b", 60, now=1060.0)

    def test_release(self):
        self.store.acquire_lease("base", 19752, "run_a", 3600, now=1000.0)

        assert not self.store.release_lease("base", 19752, "run_b")
        assert self.store.release_lease("base", 19752, "run_a")
        assert self.store.acquire_lease("base", 19752, "run_b", 3600, now=1001.0)
