"""
Per-chain settlement pipeline.

Drives one chain through IDLE -> PRECHECK -> (NO_OBLIGATIONS | PLANNING) ->
EXECUTING -> DONE, persisting and notifying along the way. Stages receive an
explicit ChainContext; the pipeline holds no per-chain state of its own.
"""

import traceback
from typing import Optional

from .errors import PrecheckError
from .logging.config import log_state_transition
from .models.context import ChainContext
from .models.schedule import PrecheckResult
from .models.settlement import ChainOutcome, ChainStatus, PipelineState
from .notify.messages import PRECHECK_ERROR
from .notify.service import NotificationService
from .persistence.execution_store import ExecutionRecord, ExecutionStore
from .scan.scanner import SubscriptionScanner
from .settlement.executor import SettlementExecutor
from .settlement.planner import plan_rounds
from .utils.time import elapsed_ms, format_day

LEASE_HELD_MESSAGE = "run lease held by another invocation"


class ChainPipeline:
    """Runs the precheck, planning and settlement stages for one chain."""

    def __init__(
        self,
        scanner: SubscriptionScanner,
        executor: SettlementExecutor,
        store: Optional[ExecutionStore] = None,
        notifier: Optional[NotificationService] = None
    ):
        self.scanner = scanner
        self.executor = executor
        self.store = store
        self.notifier = notifier

    def _transition(
        self,
        context: ChainContext,
        from_state: PipelineState,
        to_state: PipelineState,
        trigger: str,
        details: Optional[dict] = None
    ) -> PipelineState:
        log_state_transition(
            context.logger,
            chain=context.chain.name,
            from_state=from_state.value,
            to_state=to_state.value,
            trigger=trigger,
            context=details,
        )
        return to_state

    def run(self, context: ChainContext, current_day: int) -> ChainOutcome:
        """
        Run the pipeline for one chain.

        Precheck failures and a lease held elsewhere become FAILED outcomes.
        Other faults propagate to the orchestrator, which isolates them.
        """
        chain = context.chain
        state = PipelineState.IDLE

        lease_taken = self._acquire_lease(context, current_day)
        if lease_taken is False:
            self._transition(context, state, PipelineState.FAILED, "lease_unavailable",
                             {"day": current_day})
            return self._outcome(context, ChainStatus.FAILED, error=LEASE_HELD_MESSAGE)

        try:
            state = self._transition(context, state, PipelineState.PRECHECK, "run_started",
                                     {"current_day": current_day})
            try:
                precheck = self.precheck(context, current_day)
            except PrecheckError as e:
                self._transition(context, state, PipelineState.FAILED, "precheck_failed",
                                 {"error": str(e)})
                return self._outcome(context, ChainStatus.FAILED, error=str(e))

            if not precheck.should_proceed:
                trigger = "up_to_date" if precheck.up_to_date else "nothing_due"
                self._transition(context, state, PipelineState.NO_OBLIGATIONS, trigger, {
                    "current_day": precheck.current_day,
                    "next_unchecked_day": precheck.next_unchecked_day,
                })
                if self.notifier:
                    self.notifier.notify_no_obligations(
                        chain, precheck.current_day, precheck.next_unchecked_day
                    )
                return self._outcome(context, ChainStatus.NO_OBLIGATIONS_DUE)

            state = self._transition(context, state, PipelineState.PLANNING, "obligations_found")

            scan = self.scanner.scan(
                context,
                precheck.next_unchecked_day,
                precheck.current_day,
                exhaustive=True,
                batch_size=context.params.scan_batch_size,
            )
            capacity = int(context.ledger.read_call(chain.ledger_address, "maxRemits"))
            plan = plan_rounds(scan.total_obligations, capacity, context.params.max_recursion_depth)

            context.logger.info(
                "Settlement planned",
                total_obligations=plan.total_obligations,
                per_call_capacity=plan.per_call_capacity,
                expected_rounds=plan.expected_rounds,
                bounded_rounds=plan.bounded_rounds,
                capped=plan.capped,
            )
            if plan.capped:
                context.logger.warning(
                    "Settlement rounds capped by max recursion depth",
                    deferred_rounds=plan.expected_rounds - plan.bounded_rounds,
                )

            if plan.bounded_rounds == 0:
                self._transition(context, state, PipelineState.NO_OBLIGATIONS, "empty_plan")
                if self.notifier:
                    self.notifier.notify_no_obligations(
                        chain, precheck.current_day, precheck.next_unchecked_day
                    )
                return self._outcome(context, ChainStatus.NO_OBLIGATIONS_DUE)

            state = self._transition(context, state, PipelineState.EXECUTING, "plan_ready",
                                     {"bounded_rounds": plan.bounded_rounds})

            results = self.executor.execute(context, plan)

            succeeded = sum(1 for r in results if r.succeeded)
            failed = next((r for r in results if not r.succeeded), None)

            if failed is not None:
                self._transition(context, state, PipelineState.FAILED, "round_failed",
                                 {"round_index": failed.round_index})
                return self._outcome(context, ChainStatus.FAILED, len(results), succeeded,
                                     error=failed.error_message)

            self._transition(context, state, PipelineState.DONE, "rounds_complete",
                             {"rounds": len(results)})
            return self._outcome(context, ChainStatus.EXECUTED, len(results), succeeded)

        finally:
            if lease_taken:
                self._release_lease(context, current_day)

    def precheck(self, context: ChainContext, current_day: int) -> PrecheckResult:
        """
        Decide whether the chain has any work for today.

        Raises:
            PrecheckError: If the ledger cursor could not be read; the failure
                is persisted and notified before raising
        """
        chain = context.chain
        log = context.logger

        try:
            next_unchecked_day = int(context.ledger.read_call(chain.ledger_address, "nextUncheckedDay"))
        except Exception as e:
            log.error("Precheck failed", error=str(e))
            stack = traceback.format_exc()
            self._record_precheck(context, passed=False, error_message=str(e), error_stack=stack)
            if self.notifier:
                self.notifier.notify_error(chain, PRECHECK_ERROR, str(e), {
                    "Execution ID": context.execution_id,
                    "Execution Time (ms)": elapsed_ms(context.started_ms),
                    "Error Stack": stack,
                })
            raise PrecheckError(f"Precheck failed: {e}", chain=chain.name) from e

        log.info("Precheck cursor read", current_day=current_day,
                 current_date=format_day(current_day), next_unchecked_day=next_unchecked_day)

        if current_day < next_unchecked_day:
            log.info("Up to date: current day is before next unchecked day")
            result = PrecheckResult(
                should_proceed=False,
                current_day=current_day,
                next_unchecked_day=next_unchecked_day,
            )
        else:
            if next_unchecked_day > current_day + 1:
                log.warning("Next unchecked day is more than one day ahead")
            scan = self.scanner.scan(
                context,
                next_unchecked_day,
                current_day,
                exhaustive=False,
                batch_size=context.params.scan_batch_size,
            )
            result = PrecheckResult(
                should_proceed=scan.any_due,
                current_day=current_day,
                next_unchecked_day=next_unchecked_day,
                scan=scan,
            )

        self._record_precheck(context, passed=True, precheck=result)
        return result

    def _record_precheck(
        self,
        context: ChainContext,
        passed: bool,
        precheck: Optional[PrecheckResult] = None,
        error_message: Optional[str] = None,
        error_stack: Optional[str] = None
    ) -> None:
        if self.store is None:
            return

        record = ExecutionRecord(
            execution_id=context.execution_id,
            run_id=context.run_id,
            chain_name=context.chain.name,
            chain_display_name=context.chain.label,
            precheck_passed=passed,
            current_day=precheck.current_day if precheck else None,
            next_unchecked_day=precheck.next_unchecked_day if precheck else None,
            should_proceed=precheck.should_proceed if precheck else False,
            error_message=error_message,
            error_stack=error_stack,
            execution_time_ms=elapsed_ms(context.started_ms),
        )

        try:
            self.store.log_execution(record)
        except Exception as e:
            context.logger.error("Precheck logging skipped", error=str(e))

    def _acquire_lease(self, context: ChainContext, current_day: int) -> Optional[bool]:
        """True/False when the lease was decided, None when running without one."""
        if self.store is None or not context.params.lease_enabled:
            return None

        try:
            return self.store.acquire_lease(
                context.chain.name,
                current_day,
                context.run_id,
                context.params.lease_ttl_seconds,
            )
        except Exception as e:
            context.logger.error("Run lease unavailable, continuing without it", error=str(e))
            return None

    def _release_lease(self, context: ChainContext, current_day: int) -> None:
        try:
            self.store.release_lease(context.chain.name, current_day, context.run_id)
        except Exception as e:
            context.logger.error("Failed to release run lease", error=str(e))

    @staticmethod
    def _outcome(
        context: ChainContext,
        status: ChainStatus,
        rounds_executed: int = 0,
        rounds_succeeded: int = 0,
        error: Optional[str] = None
    ) -> ChainOutcome:
        return ChainOutcome(
            chain=context.chain.name,
            status=status,
            rounds_executed=rounds_executed,
            rounds_succeeded=rounds_succeeded,
            error=error,
            display_name=context.chain.label,
        )
