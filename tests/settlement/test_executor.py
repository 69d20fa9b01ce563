"""Tests for the bounded settlement executor."""

from decimal import Decimal
from unittest.mock import Mock

from clocktower_app.errors import PersistenceError, SettlementSubmissionError
from clocktower_app.models.settlement import RecursionPlan
from clocktower_app.notify.messages import TRANSACTION_EXECUTION_ERROR, TRANSACTION_FAILURE
from clocktower_app.persistence.execution_store import ExecutionStore
from clocktower_app.settlement import SettlementExecutor, plan_rounds
from clocktower_app.settlement.executor import GENERIC_FAILURE_REASON
from conftest import FakeLedger


def three_round_plan() -> RecursionPlan:
    return plan_rounds(250, 100, 5)


class TestExecuteRounds:
    """Round sequencing."""

    def test_all_rounds_succeed(self, make_context):
        ledger = FakeLedger()
        results = SettlementExecutor().execute(make_context(ledger), three_round_plan())

        assert len(results) == 3
        assert all(r.succeeded for r in results)
        assert [r.round_index for r in results] == [0, 1, 2]
        assert [r.bound_reached for r in results] == [False, False, True]
        assert len(ledger.writes) == 3

    def test_fault_in_second_round_stops_execution(self, make_context, notifier):
        """A submission fault ends the chain's rounds and is reported, not raised."""
        ledger = FakeLedger(write_outcomes=["success", SettlementSubmissionError("nonce too low")])
        executor = SettlementExecutor(notifier=notifier)

        results = executor.execute(make_context(ledger), three_round_plan())

        assert len(results) == 2
        assert results[0].succeeded
        assert not results[1].succeeded
        assert results[1].fault == "nonce too low"
        assert results[1].transaction_ref is None
        assert len(ledger.writes) == 1

        notifier.notify_success.assert_called_once()
        notifier.notify_error.assert_called_once()
        _, error_type, message, details = notifier.notify_error.call_args.args
        assert error_type == TRANSACTION_EXECUTION_ERROR
        assert message == "nonce too low"
        assert details["Execution ID"] == "exec_base_test_round_1"
        assert "Traceback" in details["Error Stack"]

    def test_reverted_round_stops_with_diagnosed_reason(self, make_context, notifier):
        ledger = FakeLedger(write_outcomes=["revert"])
        ledger.revert_reason = "Not enough allowance"

        results = SettlementExecutor(notifier=notifier).execute(make_context(ledger), three_round_plan())

        assert len(results) == 1
        assert not results[0].succeeded
        assert results[0].fault is None
        assert results[0].failure_reason == "Not enough allowance"
        assert results[0].resource_used == 84_000

        _, error_type, message, details = notifier.notify_error.call_args.args
        assert error_type == TRANSACTION_FAILURE
        assert message == "Transaction failed: Not enough allowance"
        assert details["Transaction Hash"] == results[0].transaction_ref
        assert details["Transaction Link"].startswith("https://basescan.org/tx/0x")
        assert details["USDC Balance Before"] == "500"
        assert details["USDC Balance Change"] == "0"

    def test_diagnosis_error_falls_back_to_generic_reason(self, make_context):
        ledger = FakeLedger(write_outcomes=["revert"])
        ledger.diagnose_error = RuntimeError("eth_call unavailable")

        results = SettlementExecutor().execute(make_context(ledger), three_round_plan())

        assert results[0].failure_reason == GENERIC_FAILURE_REASON

    def test_empty_diagnosis_falls_back_to_generic_reason(self, make_context):
        ledger = FakeLedger(write_outcomes=["revert"])
        ledger.revert_reason = None

        results = SettlementExecutor().execute(make_context(ledger), three_round_plan())

        assert results[0].failure_reason == GENERIC_FAILURE_REASON

    def test_zero_bound_attempts_nothing(self, make_context):
        ledger = FakeLedger()
        results = SettlementExecutor().execute(make_context(ledger), plan_rounds(0, 100, 5))
        assert results == []
        assert ledger.writes == []


class TestRoundObservations:
    """Balances captured around each round."""

    def test_balances_before_and_after(self, make_context):
        ledger = FakeLedger()
        result, stack = SettlementExecutor().run_round(make_context(ledger), plan_rounds(1, 100, 5), 0)

        assert stack is None
        assert result.native_balance_before == Decimal(2)
        assert result.native_balance_after == Decimal("1.999")
        change = result.token_balances[0]
        assert change.symbol == "USDC"
        assert change.before == Decimal(500)
        assert change.after == Decimal("501.5")
        assert change.delta == Decimal("1.5")
        assert result.bound_reached


class TestExecutionRecording:
    """Persistence of round results."""

    def test_records_round_and_token_balances(self, make_context):
        store = Mock(spec=ExecutionStore)
        store.log_execution.return_value = 42
        ledger = FakeLedger()

        SettlementExecutor(store=store).execute(make_context(ledger), plan_rounds(1, 100, 5))

        record = store.log_execution.call_args.args[0]
        assert record.execution_id == "exec_base_test_round_0"
        assert record.run_id == "run_test"
        assert record.tx_status == 1
        assert record.recursion_depth == 0
        assert record.max_recursion_reached
        store.log_token_balance.assert_called_once()
        assert store.log_token_balance.call_args.args[:2] == (42, "base")

    def test_faulted_round_has_no_tx_status(self, make_context):
        store = Mock(spec=ExecutionStore)
        ledger = FakeLedger(write_outcomes=[RuntimeError("rpc down")])

        SettlementExecutor(store=store).execute(make_context(ledger), plan_rounds(1, 100, 5))

        record = store.log_execution.call_args.args[0]
        assert record.tx_status is None
        assert record.error_message == "rpc down"
        assert "RuntimeError" in record.error_stack

    def test_store_failure_does_not_stop_rounds(self, make_context):
        store = Mock(spec=ExecutionStore)
        store.log_execution.side_effect = PersistenceError("disk full")
        ledger = FakeLedger()

        results = SettlementExecutor(store=store).execute(make_context(ledger), plan_rounds(200, 100, 5))

        assert len(results) == 2
        assert all(r.succeeded for r in results)
