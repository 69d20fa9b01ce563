"""Default configuration parameters for the remit scheduler."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineParams:
    """Scan, planning and settlement parameters."""
    # Planning
    max_recursion_depth: int = 5                     # Hard ceiling on rounds per chain per run

    # Settlement
    gas_limit: int = 1_000_000                       # Gas ceiling for each remit call
    receipt_timeout_seconds: int = 120               # Finality wait before the client gives up
    rpc_timeout_seconds: int = 30                    # Per-request JSON-RPC timeout

    # Scanning
    scan_batch_size: int = 50                        # Reads per multicall request

    # Orchestration
    max_workers: int = 1                             # >1 runs chains in a thread pool

    # Run lease
    lease_enabled: bool = True
    lease_ttl_seconds: int = 3600


@dataclass(frozen=True)
class NotificationParams:
    """Notification delivery parameters."""
    min_interval_ms: int = 500                       # Provider allows 2 requests/second
    request_timeout_seconds: int = 30
    retry_attempts: int = 2
    retry_delay_seconds: int = 1
    api_url: str = "https://api.resend.com/emails"
    stdout: bool = False                             # Also print notifications to stdout


@dataclass(frozen=True)
class DatabaseParams:
    """Execution history store parameters."""
    path: str = "clocktower.db"
    enabled: bool = True


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    engine: EngineParams
    notifications: NotificationParams
    database: DatabaseParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        engine=EngineParams(),
        notifications=NotificationParams(),
        database=DatabaseParams(),
    )
