"""Subscription scanning over a range of ledger days."""

from typing import TYPE_CHECKING, Optional

from ..errors import LedgerError
from ..ledger.base import ReadCall
from ..models.schedule import FrequencyClass, ScanResult, is_active_obligation
from ..schedule.calendar import due_day

if TYPE_CHECKING:
    from ..models.context import ChainContext


def build_read_calls(ledger_address: str, from_day: int, to_day: int) -> list[ReadCall]:
    """
    Enqueue one ``getIdByTime`` read per non-skipped (day, frequency) pair.

    Args:
        ledger_address: Clocktower contract address
        from_day: First day index (inclusive)
        to_day: Last day index (inclusive)

    Returns:
        Read calls in day order, then frequency-code order
    """
    calls = []

    for day in range(from_day, to_day + 1):
        for frequency in FrequencyClass:
            result = due_day(frequency, day)
            if result.skip:
                continue
            calls.append(ReadCall(
                contract=ledger_address,
                function="getIdByTime",
                args=(int(frequency), result.due_day),
            ))

    return calls


def chunk(calls: list[ReadCall], size: int) -> list[list[ReadCall]]:
    """Split read calls into consecutive batches of at most ``size`` calls."""
    if size <= 0:
        raise ValueError(f"batch size must be positive, got {size}")
    return [calls[i:i + size] for i in range(0, len(calls), size)]


class SubscriptionScanner:
    """
    Counts active obligations between two day indices.

    Used twice per chain: as a short-circuiting precheck ("is there any work
    at all") and as the exhaustive count the planner needs.
    """

    def __init__(self, batch_size: int = 50):
        self.batch_size = batch_size

    def scan(
        self,
        context: "ChainContext",
        from_day: int,
        to_day: int,
        exhaustive: bool = True,
        batch_size: Optional[int] = None
    ) -> ScanResult:
        """
        Scan ``[from_day, to_day]`` for active obligations.

        Args:
            context: Chain context providing the ledger and logger
            from_day: Ledger cursor (next unchecked day)
            to_day: Current day index
            exhaustive: When False, stop after the first batch with a hit
            batch_size: Override for the configured batch size

        Returns:
            ScanResult with the obligation count and call statistics
        """
        log = context.logger

        if from_day > to_day:
            log.debug("Ledger cursor ahead of current day, nothing to scan",
                      from_day=from_day, to_day=to_day)
            return ScanResult(any_due=False, total_obligations=0, exhaustive=exhaustive)

        calls = build_read_calls(context.chain.ledger_address, from_day, to_day)
        batches = chunk(calls, batch_size or self.batch_size)

        log.debug("Scanning for obligations", from_day=from_day, to_day=to_day,
                  calls=len(calls), batches=len(batches), exhaustive=exhaustive)

        total = 0
        issued = 0
        failed = 0

        for index, batch in enumerate(batches):
            issued += len(batch)

            try:
                results = context.ledger.batch_read_call(batch)
            except LedgerError as e:
                # A lost batch counts as zero obligations for each of its calls
                failed += len(batch)
                log.warning("Batch read failed, continuing scan",
                            batch_index=index, batch_size=len(batch), error=str(e))
                continue

            missing = len(batch) - len(results)
            if missing > 0:
                # Calls without a result count as failed reads
                failed += missing
                log.warning("Batch returned fewer results than calls",
                            batch_index=index, batch_size=len(batch), results=len(results))

            for call, result in zip(batch, results):
                if not result.success:
                    failed += 1
                    log.warning("Read call failed, counting zero obligations",
                                frequency=FrequencyClass(call.args[0]).label,
                                due_day=call.args[1], error=result.error)
                    continue

                total += sum(1 for obligation_id in (result.value or ()) if is_active_obligation(obligation_id))

            if not exhaustive and total > 0:
                log.debug("Obligation found, stopping precheck scan", batch_index=index)
                break

        log.info("Scan complete", total_obligations=total, calls_issued=issued,
                 calls_failed=failed, exhaustive=exhaustive)

        return ScanResult(
            any_due=total > 0,
            total_obligations=total,
            calls_issued=issued,
            calls_failed=failed,
            exhaustive=exhaustive,
        )
