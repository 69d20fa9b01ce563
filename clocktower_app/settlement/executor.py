"""
Bounded settlement executor.

Runs settlement rounds against the ledger one after another, stopping at the
first round that does not succeed or when the planned bound is reached.
"""

import traceback
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from ..logging.config import get_settlement_logger, log_round_result
from ..models.chain import TokenConfig
from ..models.settlement import RecursionPlan, SettlementRoundResult, TokenBalanceChange
from ..notify.messages import TRANSACTION_EXECUTION_ERROR, TRANSACTION_FAILURE
from ..persistence.execution_store import ExecutionRecord
from ..utils.time import elapsed_ms, monotonic_ms
from ..utils.units import display_amount, format_native, format_units

if TYPE_CHECKING:
    from ..models.context import ChainContext
    from ..notify.service import NotificationService
    from ..persistence.execution_store import ExecutionStore

settlement_logger = get_settlement_logger(__name__)

SETTLEMENT_FUNCTION = "remit"
GENERIC_FAILURE_REASON = "Transaction failed"


class SettlementExecutor:
    """Performs up to ``plan.bounded_rounds`` settlement rounds for one chain."""

    def __init__(
        self,
        store: Optional["ExecutionStore"] = None,
        notifier: Optional["NotificationService"] = None
    ):
        self.store = store
        self.notifier = notifier

    def execute(self, context: "ChainContext", plan: RecursionPlan) -> list[SettlementRoundResult]:
        """
        Run settlement rounds until one fails or the bound is reached.

        Round ``k + 1`` is attempted only if round ``k`` succeeded and
        ``k + 1 < plan.bounded_rounds``.

        Args:
            context: Chain context
            plan: Recursion plan for this chain and run

        Returns:
            One result per attempted round, in order
        """
        results: list[SettlementRoundResult] = []
        round_index = 0

        while round_index < plan.bounded_rounds:
            context.logger.info("Starting settlement round",
                                round=round_index + 1, bounded_rounds=plan.bounded_rounds)

            result, error_stack = self.run_round(context, plan, round_index)
            results.append(result)

            log_round_result(settlement_logger, context.chain.name, result)
            self._record(context, result, error_stack)
            self._notify(context, result, error_stack)

            if not result.succeeded:
                context.logger.warning("Stopping settlement after unsuccessful round",
                                       round_index=round_index)
                break

            if round_index + 1 >= plan.bounded_rounds:
                context.logger.info("Reached expected round limit, stopping",
                                    bounded_rounds=plan.bounded_rounds)
                break

            round_index += 1

        return results

    def run_round(
        self,
        context: "ChainContext",
        plan: RecursionPlan,
        round_index: int
    ) -> tuple[SettlementRoundResult, Optional[str]]:
        """
        Execute one settlement round.

        Faults (submission, finality wait, balance reads) are caught here and
        reported on the result rather than raised.

        Returns:
            The round result and, for a faulted round, the formatted traceback
        """
        start_ms = monotonic_ms()
        ledger = context.ledger
        caller = context.caller_address
        bound_reached = round_index >= plan.bounded_rounds - 1

        native_before: Optional[Decimal] = None
        transaction_ref: Optional[str] = None

        try:
            native_before = format_native(ledger.get_balance(caller))
            tokens_before = self._token_snapshot(context)

            transaction_ref = ledger.write_call(
                context.chain.ledger_address,
                SETTLEMENT_FUNCTION,
                (),
                context.params.gas_limit,
            )
            context.logger.info("Settlement transaction sent", tx_hash=transaction_ref)

            receipt = ledger.wait_for_finality(transaction_ref)

            failure_reason = None
            if not receipt.succeeded:
                failure_reason = self.diagnose(context, transaction_ref)

            native_after = format_native(ledger.get_balance(caller))
            tokens_after = self._token_snapshot(context)

        except Exception as e:
            context.logger.error("Settlement round faulted", round_index=round_index,
                                 tx_hash=transaction_ref, error=str(e))
            return SettlementRoundResult(
                round_index=round_index,
                succeeded=False,
                transaction_ref=transaction_ref,
                fault=str(e),
                native_balance_before=native_before,
                bound_reached=bound_reached,
                elapsed_ms=elapsed_ms(start_ms),
            ), traceback.format_exc()

        token_balances = tuple(
            TokenBalanceChange(
                address=token.address,
                symbol=token.symbol,
                name=token.name,
                decimals=token.decimals,
                before=before,
                after=tokens_after[index][1],
            )
            for index, (token, before) in enumerate(tokens_before)
        )

        return SettlementRoundResult(
            round_index=round_index,
            succeeded=receipt.succeeded,
            transaction_ref=transaction_ref,
            failure_reason=failure_reason,
            resource_used=receipt.resource_used,
            native_balance_before=native_before,
            native_balance_after=native_after,
            token_balances=token_balances,
            bound_reached=bound_reached,
            elapsed_ms=elapsed_ms(start_ms),
        ), None

    def diagnose(self, context: "ChainContext", transaction_ref: str) -> str:
        """Best-effort revert reason; diagnosis errors never replace the failure."""
        try:
            reason = context.ledger.diagnose_failure(transaction_ref)
        except Exception as e:
            context.logger.debug("Failure diagnosis unavailable", tx_hash=transaction_ref, error=str(e))
            return GENERIC_FAILURE_REASON
        return reason or GENERIC_FAILURE_REASON

    def _token_snapshot(self, context: "ChainContext") -> list[tuple[TokenConfig, Decimal]]:
        return [
            (token, format_units(
                context.ledger.token_balance(token.address, context.caller_address),
                token.decimals,
            ))
            for token in context.chain.tokens
        ]

    def _record(
        self,
        context: "ChainContext",
        result: SettlementRoundResult,
        error_stack: Optional[str]
    ) -> None:
        """Persist the round; store failures are logged and dropped."""
        if self.store is None:
            return

        if result.fault:
            tx_status = None
        else:
            tx_status = 1 if result.succeeded else 0

        record = ExecutionRecord(
            execution_id=context.round_execution_id(result.round_index),
            run_id=context.run_id,
            chain_name=context.chain.name,
            chain_display_name=context.chain.label,
            precheck_passed=True,
            should_proceed=True,
            tx_hash=result.transaction_ref,
            tx_status=tx_status,
            revert_reason=result.failure_reason,
            gas_used=result.resource_used,
            balance_before_eth=float(result.native_balance_before) if result.native_balance_before is not None else None,
            balance_after_eth=float(result.native_balance_after) if result.native_balance_after is not None else None,
            recursion_depth=result.round_index,
            max_recursion_reached=result.bound_reached,
            error_message=result.fault,
            error_stack=error_stack,
            execution_time_ms=result.elapsed_ms,
        )

        try:
            row_id = self.store.log_execution(record)
            for change in result.token_balances:
                self.store.log_token_balance(row_id, context.chain.name, change)
        except Exception as e:
            context.logger.error("Execution logging skipped", execution_id=record.execution_id, error=str(e))

    def _notify(
        self,
        context: "ChainContext",
        result: SettlementRoundResult,
        error_stack: Optional[str]
    ) -> None:
        if self.notifier is None:
            return

        chain = context.chain

        if result.succeeded:
            self.notifier.notify_success(chain, result)
            return

        if result.fault:
            self.notifier.notify_error(chain, TRANSACTION_EXECUTION_ERROR, result.fault, {
                "Execution ID": context.round_execution_id(result.round_index),
                "Recursion Depth": result.round_index,
                "Execution Time (ms)": result.elapsed_ms,
                "Error Stack": error_stack or "N/A",
            })
            return

        details = {
            "Transaction Hash": result.transaction_ref,
            "Transaction Link": chain.explorer_link(result.transaction_ref or ""),
            "Recursion Depth": result.round_index,
            "ETH Balance Before": display_amount(result.native_balance_before)
            if result.native_balance_before is not None else None,
            "ETH Balance After": display_amount(result.native_balance_after)
            if result.native_balance_after is not None else None,
        }
        for change in result.token_balances:
            details[f"{change.symbol} Balance Before"] = display_amount(change.before)
            details[f"{change.symbol} Balance After"] = display_amount(change.after)
            details[f"{change.symbol} Balance Change"] = display_amount(change.delta)

        self.notifier.notify_error(
            chain, TRANSACTION_FAILURE, f"Transaction failed: {result.failure_reason}", details
        )
