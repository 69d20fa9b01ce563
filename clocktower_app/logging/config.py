"""
Centralized logging configuration for the Clocktower caller.

This module provides standardized logging configuration using structlog
for all components. All logging throughout the system should use this
configuration to ensure consistent formatting and structured logging.
"""
import logging
import sys
from typing import TYPE_CHECKING, Any, Optional

import structlog
from structlog.types import FilteringBoundLogger

if TYPE_CHECKING:
    from ..models.settlement import SettlementRoundResult


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"  # structlog will handle formatting
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                       structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_chain_logger(name: str, chain: str) -> FilteringBoundLogger:
    """
    Get a logger bound to a single chain's pipeline.

    Every line emitted through it carries the chain name, which replaces
    the "[chain] message" prefixes of plain-text logs.
    """
    return get_logger(name).bind(subsystem="chain", chain=chain)


def get_settlement_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger specifically configured for settlement rounds.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for settlement auditing
    """
    logger = get_logger(name)

    return logger.bind(
        subsystem="settlement",
        audit_trail=True
    )


def log_state_transition(
    logger: FilteringBoundLogger,
    chain: str,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a pipeline state transition with standardized format.

    Args:
        logger: Structlog logger instance
        chain: Name of the chain whose pipeline is transitioning
        from_state: Current state
        to_state: Target state
        trigger: What triggered the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        chain=chain,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("State transition")


def log_round_result(
    logger: FilteringBoundLogger,
    chain: str,
    result: "SettlementRoundResult"
) -> None:
    """Log the outcome of one settlement round, including balance deltas."""
    bound_logger = logger.bind(
        chain=chain,
        round_index=result.round_index,
        tx_hash=result.transaction_ref,
        gas_used=result.resource_used,
        native_before=str(result.native_balance_before),
        native_after=str(result.native_balance_after),
        tokens={
            change.symbol: f"{change.before} -> {change.after}"
            for change in result.token_balances
        },
    )

    if result.succeeded:
        bound_logger.info("Settlement round succeeded")
    elif result.fault:
        bound_logger.error("Settlement round faulted", fault=result.fault)
    else:
        bound_logger.warning("Settlement round failed", reason=result.failure_reason)
