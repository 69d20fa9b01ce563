"""
Multi-chain orchestrator.

Runs the settlement pipeline once per configured chain, isolating each chain
so that one chain's fault can never stop the others from running or being
reported, then aggregates the outcomes into a run summary.
"""

import traceback
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Optional

import structlog

from .config.defaults import EngineParams
from .config.loader import RuntimeSettings
from .ledger.base import LedgerClient
from .logging.config import get_chain_logger
from .models.chain import ChainConfig
from .models.context import ChainContext
from .models.settlement import ChainOutcome, ChainStatus, RunSummary
from .notify.messages import CHAIN_PROCESSING_ERROR
from .notify.service import NotificationService
from .persistence.execution_store import ExecutionStore
from .pipeline import ChainPipeline
from .scan.scanner import SubscriptionScanner
from .settlement.executor import SettlementExecutor
from .utils.ids import generate_execution_id
from .utils.time import elapsed_ms, get_current_day, monotonic_ms

logger = structlog.get_logger(__name__)

LedgerFactory = Callable[[ChainConfig], LedgerClient]


class ChainOrchestrator:
    """
    Coordinator for one scheduled invocation across all active chains.

    Flow per chain: lease -> precheck -> plan -> settle -> outcome.
    """

    def __init__(
        self,
        ledger_factory: LedgerFactory,
        caller_address: str,
        params: Optional[EngineParams] = None,
        store: Optional[ExecutionStore] = None,
        notifier: Optional[NotificationService] = None,
        pipeline: Optional[ChainPipeline] = None
    ) -> None:
        self.ledger_factory = ledger_factory
        self.caller_address = caller_address
        self.params = params or EngineParams()
        self.store = store
        self.notifier = notifier
        self.pipeline = pipeline or ChainPipeline(
            scanner=SubscriptionScanner(batch_size=self.params.scan_batch_size),
            executor=SettlementExecutor(store=store, notifier=notifier),
            store=store,
            notifier=notifier,
        )
        self.logger = logger

    @classmethod
    def create(
        cls,
        settings: RuntimeSettings,
        ledger_factory: Optional[LedgerFactory] = None
    ) -> "ChainOrchestrator":
        """
        Wire the orchestrator from resolved settings.

        The execution store is optional: if it cannot be opened the run
        continues without history or leases.
        """
        store = None
        if settings.database.enabled:
            try:
                store = ExecutionStore(settings.database.path)
            except Exception as e:
                logger.error("Execution store unavailable, continuing without history",
                             path=settings.database.path, error=str(e))

        notifier = NotificationService.create(settings.notification_config())

        if ledger_factory is None:
            ledger_factory = web3_ledger_factory(settings)

        return cls(
            ledger_factory=ledger_factory,
            caller_address=settings.caller_address or "",
            params=settings.engine,
            store=store,
            notifier=notifier,
        )

    def run_all(self, chains: list[ChainConfig], now: Optional[datetime] = None) -> RunSummary:
        """
        Run every chain and aggregate the outcomes. Never raises.

        Args:
            chains: Active chain configurations
            now: Override for the wall clock (determines the current day)

        Returns:
            RunSummary with one outcome per chain, in input order
        """
        start_ms = monotonic_ms()
        run_id = generate_execution_id("run")
        current_day = get_current_day(now)

        self.logger.info(
            "Starting multi-chain execution",
            run_id=run_id,
            chains=[chain.name for chain in chains],
            current_day=current_day,
            max_workers=self.params.max_workers
        )

        if self.params.max_workers > 1 and len(chains) > 1:
            with ThreadPoolExecutor(max_workers=self.params.max_workers,
                                    thread_name_prefix="chain") as pool:
                futures = [
                    pool.submit(self.run_chain, chain, run_id, current_day)
                    for chain in chains
                ]
                outcomes = [future.result() for future in futures]
        else:
            outcomes = [self.run_chain(chain, run_id, current_day) for chain in chains]

        summary = RunSummary(run_id=run_id, outcomes=tuple(outcomes), elapsed_ms=elapsed_ms(start_ms))

        self.logger.info(
            "Multi-chain execution complete",
            run_id=run_id,
            total=summary.total,
            executed=summary.executed,
            no_obligations=summary.no_obligations,
            failed=summary.failed,
            failed_chains=summary.failed_chains,
            elapsed_ms=summary.elapsed_ms
        )

        if self.notifier:
            self.notifier.notify_summary(summary)

        return summary

    def run_chain(self, chain: ChainConfig, run_id: str, current_day: int) -> ChainOutcome:
        """Run one chain's pipeline, converting any fault into a FAILED outcome."""
        chain_logger = get_chain_logger(__name__, chain.name)
        execution_id = generate_execution_id(f"exec_{chain.name}")

        try:
            chain_logger.info("Starting chain execution", display_name=chain.label,
                              execution_id=execution_id)

            context = ChainContext(
                chain=chain,
                ledger=self.ledger_factory(chain),
                caller_address=self.caller_address,
                run_id=run_id,
                execution_id=execution_id,
                params=self.params,
                logger=chain_logger.bind(execution_id=execution_id),
            )
            outcome = self.pipeline.run(context, current_day)

            chain_logger.info("Completed chain execution", status=outcome.status.value,
                              rounds_executed=outcome.rounds_executed)
            return outcome

        except Exception as e:
            chain_logger.error("Chain execution failed", error=str(e), exc_info=True)

            if self.notifier:
                self.notifier.notify_error(chain, CHAIN_PROCESSING_ERROR, str(e), {
                    "Chain Name": chain.name,
                    "Error Stack": traceback.format_exc(),
                })

            return ChainOutcome(
                chain=chain.name,
                status=ChainStatus.FAILED,
                error=str(e),
                display_name=chain.label,
            )


def web3_ledger_factory(settings: RuntimeSettings) -> LedgerFactory:
    """Ledger factory building a web3.py client per chain."""
    from .ledger.web3_client import Web3LedgerClient

    def build(chain: ChainConfig) -> LedgerClient:
        return Web3LedgerClient.from_rpc_url(
            chain.resolve_rpc_url(settings.rpc_api_key),
            chain_id=chain.chain_id,
            caller_address=settings.caller_address or "",
            private_key=settings.caller_private_key,
            receipt_timeout_seconds=settings.engine.receipt_timeout_seconds,
            request_timeout_seconds=settings.engine.rpc_timeout_seconds,
        )

    return build
