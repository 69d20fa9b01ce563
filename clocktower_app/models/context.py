"""Per-chain execution context passed explicitly into each pipeline stage."""

from dataclasses import dataclass, field
from typing import Any

from ..config.defaults import EngineParams
from ..ledger.base import LedgerClient
from ..utils.time import monotonic_ms
from .chain import ChainConfig


@dataclass(frozen=True)
class ChainContext:
    """
    Everything a pipeline stage needs to know about the chain it works on.

    Built once per chain per run by the orchestrator. Stages never reach for
    module-level state; they receive this object instead.
    """
    chain: ChainConfig
    ledger: LedgerClient
    caller_address: str
    run_id: str
    execution_id: str
    params: EngineParams
    logger: Any
    started_ms: int = field(default_factory=monotonic_ms)

    def round_execution_id(self, round_index: int) -> str:
        """Execution id for a single settlement round."""
        return f"{self.execution_id}_round_{round_index}"
