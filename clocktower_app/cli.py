"""Command line entry point: ``clocktower-caller``."""

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

import structlog
from dotenv import find_dotenv, load_dotenv

from .config.loader import ConfigLoader, RuntimeSettings
from .config.validation import ConfigValidator
from .engine import ChainOrchestrator
from .errors import ConfigurationError
from .logging.config import configure_logging
from .models.settlement import RunSummary
from .notify.messages import describe_outcome
from .persistence.execution_store import ExecutionStore

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clocktower-caller",
        description="Trigger due Clocktower remits across configured chains.",
    )
    parser.add_argument("--config-dir", type=Path, default=None,
                        help="Directory holding settings.yaml and chains.yaml")
    parser.add_argument("--env-file", type=Path, default=None,
                        help="Environment file to load (default: .env if present)")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--json-logs", action="store_true",
                        default=os.environ.get("LOG_FORMAT", "").lower() == "json",
                        help="Emit JSON log lines")

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Run the settlement pipeline for every active chain")
    sub.add_parser("validate-config", help="Validate configuration and credentials")

    history = sub.add_parser("history", help="Show recent execution records")
    history.add_argument("--chain", default=None, help="Only show this chain")
    history.add_argument("--limit", type=int, default=10)

    sub.add_parser("test-notifications", help="Send a test notification")

    return parser


def print_summary(summary: RunSummary) -> None:
    print(f"Run {summary.run_id}: {summary.executed} executed, "
          f"{summary.no_obligations} no obligations, {summary.failed} failed "
          f"({summary.elapsed_ms} ms)")
    for outcome in summary.outcomes:
        label = outcome.display_name or outcome.chain
        print(f"  {label}: {describe_outcome(outcome.status, outcome.rounds_succeeded, outcome.error)}")


def cmd_run(loader: ConfigLoader) -> int:
    try:
        settings = loader.load_settings()
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        return 1

    errors = ConfigValidator.validate_credentials(settings.caller_address, settings.caller_private_key)
    if errors:
        for err in errors:
            logger.error("Missing or invalid credential", field=err.field, message=err.message)
        return 1

    chains = loader.load_chain_configs()
    if not chains:
        logger.error("No valid chain configurations found")
        return 1

    orchestrator = ChainOrchestrator.create(settings)
    summary = orchestrator.run_all(chains)
    print_summary(summary)
    return summary.exit_code


def cmd_validate_config(loader: ConfigLoader) -> int:
    problems = []

    try:
        settings: Optional[RuntimeSettings] = loader.load_settings()
    except ConfigurationError as e:
        settings = None
        problems.extend(f"{err.field}: {err.message} (got: {err.value})" for err in e.errors)

    if settings is not None:
        problems.extend(
            f"{err.field}: {err.message}"
            for err in ConfigValidator.validate_credentials(settings.caller_address, settings.caller_private_key)
        )

    chains = loader.load_chain_configs()
    if not chains:
        problems.append("chains: no valid chain configurations")

    if problems:
        print(f"Found {len(problems)} configuration problem(s):")
        for problem in problems:
            print(f"  - {problem}")
        return 1

    print(f"Configuration valid: {', '.join(chain.name for chain in chains)}")
    return 0


def cmd_history(loader: ConfigLoader, chain: Optional[str], limit: int) -> int:
    try:
        settings = loader.load_settings()
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        return 1

    store = ExecutionStore(settings.database.path)
    stats = store.get_execution_stats(chain)
    rows = store.get_recent_executions(limit, chain)

    print(f"Executions: {stats.get('total_executions', 0)}, "
          f"successful transactions: {stats.get('successful_txs', 0)}, "
          f"last: {stats.get('last_execution') or 'never'}")
    for row in rows:
        status = {1: "success", 0: "failed"}.get(row["tx_status"], "-")
        print(f"  {row['timestamp']}  {row['chain_name']:<14} depth={row['recursion_depth']} "
              f"tx={row['tx_hash'] or '-'} status={status}"
              + (f" error={row['error_message']}" if row["error_message"] else ""))
    return 0


def cmd_test_notifications(loader: ConfigLoader) -> int:
    try:
        settings = loader.load_settings()
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        return 1

    from .notify.service import NotificationService

    service = NotificationService.create(settings.notification_config())
    if not service.enabled:
        print("No notification channel configured")
        return 1

    ok = service.send_test()
    print("Test notification sent" if ok else "Test notification failed")
    return 0 if ok else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.env_file:
        load_dotenv(args.env_file, override=False)
    else:
        load_dotenv(find_dotenv(usecwd=True), override=False)

    configure_logging(level=args.log_level, format_json=args.json_logs)

    loader = ConfigLoader.create(args.config_dir)
    command = args.command or "run"

    try:
        if command == "run":
            return cmd_run(loader)
        if command == "validate-config":
            return cmd_validate_config(loader)
        if command == "history":
            return cmd_history(loader, args.chain, args.limit)
        if command == "test-notifications":
            return cmd_test_notifications(loader)
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        return 1

    parser.error(f"unknown command {command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
