"""Execution history persistence for audit trails and run leases."""

import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

import structlog

from ..errors import PersistenceError
from ..models.chain import TokenConfig
from ..models.settlement import TokenBalanceChange
from ..utils.time import utc_now_iso


@dataclass
class ExecutionRecord:
    """One row of ``execution_logs``: a precheck or a settlement round."""
    execution_id: str
    chain_name: str
    chain_display_name: str
    precheck_passed: bool
    run_id: Optional[str] = None
    timestamp: Optional[str] = None
    current_day: Optional[int] = None
    next_unchecked_day: Optional[int] = None
    should_proceed: Optional[bool] = None
    tx_hash: Optional[str] = None
    tx_status: Optional[int] = None          # 0 = failed, 1 = success
    revert_reason: Optional[str] = None
    gas_used: Optional[int] = None
    balance_before_eth: Optional[float] = None
    balance_after_eth: Optional[float] = None
    recursion_depth: int = 0
    max_recursion_reached: bool = False
    error_message: Optional[str] = None
    error_stack: Optional[str] = None
    execution_time_ms: Optional[int] = None


EXECUTION_COLUMNS = [
    "execution_id", "run_id", "timestamp", "chain_name", "chain_display_name",
    "precheck_passed", "current_day", "next_unchecked_day", "should_proceed",
    "tx_hash", "tx_status", "revert_reason", "gas_used",
    "balance_before_eth", "balance_after_eth", "recursion_depth",
    "max_recursion_reached", "error_message", "error_stack", "execution_time_ms",
]


class ExecutionStore:
    """SQLite-based execution history."""

    def __init__(self, db_path: str = "clocktower.db"):
        self.db_path = Path(db_path)
        self.logger = structlog.get_logger("execution.store")
        self._lock = threading.Lock()

        # Create database and tables
        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    token_address TEXT NOT NULL,
                    token_symbol TEXT NOT NULL,
                    token_name TEXT NOT NULL,
                    decimals INTEGER NOT NULL,
                    chain_name TEXT NOT NULL,
                    is_active BOOLEAN DEFAULT TRUE,
                    created_at TEXT DEFAULT (datetime('now')),
                    UNIQUE(token_address, chain_name)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS execution_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    execution_id TEXT UNIQUE,
                    timestamp TEXT NOT NULL,
                    chain_name TEXT NOT NULL,
                    chain_display_name TEXT NOT NULL,
                    precheck_passed BOOLEAN NOT NULL,
                    current_day INTEGER,
                    next_unchecked_day INTEGER,
                    should_proceed BOOLEAN,
                    tx_hash TEXT,
                    tx_status INTEGER,
                    revert_reason TEXT,
                    gas_used INTEGER,
                    balance_before_eth REAL,
                    balance_after_eth REAL,
                    recursion_depth INTEGER DEFAULT 0,
                    max_recursion_reached BOOLEAN DEFAULT FALSE,
                    error_message TEXT,
                    error_stack TEXT,
                    execution_time_ms INTEGER,
                    created_at TEXT DEFAULT (datetime('now'))
                )
            """)

            # Databases created before run ids were recorded lack the column
            columns = [row[1] for row in conn.execute("PRAGMA table_info(execution_logs)").fetchall()]
            if "run_id" not in columns:
                conn.execute("ALTER TABLE execution_logs ADD COLUMN run_id TEXT")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS token_balances (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    execution_log_id INTEGER,
                    token_id INTEGER,
                    balance_before REAL,
                    balance_after REAL,
                    created_at TEXT DEFAULT (datetime('now')),
                    FOREIGN KEY (execution_log_id) REFERENCES execution_logs(id),
                    FOREIGN KEY (token_id) REFERENCES tokens(id)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS run_leases (
                    chain_name TEXT NOT NULL,
                    day INTEGER NOT NULL,
                    holder TEXT NOT NULL,
                    acquired_at TEXT NOT NULL,
                    expires_at REAL NOT NULL,
                    PRIMARY KEY (chain_name, day)
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_execution_logs_timestamp ON execution_logs(timestamp)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_execution_logs_chain_timestamp
                ON execution_logs(chain_name, timestamp)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_execution_logs_tx_hash ON execution_logs(tx_hash)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_token_balances_execution ON token_balances(execution_log_id)
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error("Database error", error=str(e))
            raise
        finally:
            if conn:
                conn.close()

    def log_execution(self, record: ExecutionRecord) -> int:
        """
        Insert an execution record.

        Args:
            record: Precheck or settlement round record

        Returns:
            Row id of the stored record

        Raises:
            PersistenceError: If the record could not be written
        """
        values = asdict(record)
        if values["timestamp"] is None:
            values["timestamp"] = utc_now_iso()

        placeholders = ", ".join("?" for _ in EXECUTION_COLUMNS)

        with self._lock:
            try:
                with self._get_connection() as conn:
                    cursor = conn.execute(
                        f"INSERT INTO execution_logs ({', '.join(EXECUTION_COLUMNS)}) VALUES ({placeholders})",
                        tuple(values[column] for column in EXECUTION_COLUMNS)
                    )
                    conn.commit()
                    row_id = cursor.lastrowid
            except sqlite3.Error as e:
                raise PersistenceError(
                    f"Failed to log execution: {e}",
                    operation="insert",
                    target="execution_logs",
                    context={"execution_id": record.execution_id},
                ) from e

        self.logger.debug(
            "Execution logged",
            execution_id=record.execution_id,
            chain=record.chain_name,
            row_id=row_id
        )
        return row_id

    def get_or_create_token(self, token: TokenConfig, chain_name: str) -> int:
        """Return the ``tokens`` row id for a token, registering it if new."""
        with self._lock:
            try:
                with self._get_connection() as conn:
                    conn.execute("""
                        INSERT OR IGNORE INTO tokens (
                            token_address, token_symbol, token_name, decimals, chain_name, is_active
                        ) VALUES (?, ?, ?, ?, ?, 1)
                    """, (token.address, token.symbol, token.name, token.decimals, chain_name))
                    conn.commit()

                    row = conn.execute("""
                        SELECT id FROM tokens WHERE token_address = ? AND chain_name = ?
                    """, (token.address, chain_name)).fetchone()
            except sqlite3.Error as e:
                raise PersistenceError(
                    f"Failed to register token: {e}",
                    operation="upsert",
                    target="tokens",
                ) from e

        if row is None:
            raise PersistenceError(
                "Failed to create or retrieve token record",
                operation="upsert",
                target="tokens",
                context={"token": token.address, "chain": chain_name},
            )
        return row["id"]

    def log_token_balance(
        self,
        execution_log_id: int,
        chain_name: str,
        change: TokenBalanceChange
    ) -> None:
        """Record one token's before/after balance for an execution record."""
        token_id = self.get_or_create_token(
            TokenConfig(
                address=change.address,
                symbol=change.symbol,
                name=change.name,
                decimals=change.decimals,
            ),
            chain_name,
        )

        with self._lock:
            try:
                with self._get_connection() as conn:
                    conn.execute("""
                        INSERT INTO token_balances (execution_log_id, token_id, balance_before, balance_after)
                        VALUES (?, ?, ?, ?)
                    """, (execution_log_id, token_id, float(change.before), float(change.after)))
                    conn.commit()
            except sqlite3.Error as e:
                raise PersistenceError(
                    f"Failed to log token balance: {e}",
                    operation="insert",
                    target="token_balances",
                ) from e

    def acquire_lease(
        self,
        chain_name: str,
        day: int,
        holder: str,
        ttl_seconds: int,
        now: Optional[float] = None
    ) -> bool:
        """
        Take the run lease for (chain, day).

        Returns:
            True if ``holder`` now owns the lease, False if another unexpired
            holder has it
        """
        now = time.time() if now is None else now

        with self._lock:
            try:
                with self._get_connection() as conn:
                    conn.execute("BEGIN IMMEDIATE")
                    conn.execute("""
                        DELETE FROM run_leases WHERE chain_name = ? AND day = ? AND expires_at <= ?
                    """, (chain_name, day, now))
                    conn.execute("""
                        INSERT OR IGNORE INTO run_leases (chain_name, day, holder, acquired_at, expires_at)
                        VALUES (?, ?, ?, ?, ?)
                    """, (chain_name, day, holder, utc_now_iso(), now + ttl_seconds))
                    row = conn.execute("""
                        SELECT holder FROM run_leases WHERE chain_name = ? AND day = ?
                    """, (chain_name, day)).fetchone()
                    conn.commit()
            except sqlite3.Error as e:
                raise PersistenceError(
                    f"Failed to acquire run lease: {e}",
                    operation="acquire",
                    target="run_leases",
                ) from e

        acquired = row is not None and row["holder"] == holder
        self.logger.info(
            "Run lease acquired" if acquired else "Run lease held elsewhere",
            chain=chain_name,
            day=day,
            holder=row["holder"] if row else None
        )
        return acquired

    def release_lease(self, chain_name: str, day: int, holder: str) -> bool:
        """Release a lease held by ``holder``; returns False if it was not held."""
        with self._lock:
            try:
                with self._get_connection() as conn:
                    cursor = conn.execute("""
                        DELETE FROM run_leases WHERE chain_name = ? AND day = ? AND holder = ?
                    """, (chain_name, day, holder))
                    conn.commit()
                    return cursor.rowcount > 0
            except sqlite3.Error as e:
                raise PersistenceError(
                    f"Failed to release run lease: {e}",
                    operation="release",
                    target="run_leases",
                ) from e

    def get_recent_executions(self, limit: int = 10, chain_name: Optional[str] = None) -> list[dict[str, Any]]:
        """Get the most recent execution records, newest first."""
        try:
            with self._get_connection() as conn:
                if chain_name:
                    rows = conn.execute("""
                        SELECT * FROM execution_logs WHERE chain_name = ?
                        ORDER BY timestamp DESC, id DESC LIMIT ?
                    """, (chain_name, limit)).fetchall()
                else:
                    rows = conn.execute("""
                        SELECT * FROM execution_logs
                        ORDER BY timestamp DESC, id DESC LIMIT ?
                    """, (limit,)).fetchall()

                return [dict(row) for row in rows]

        except sqlite3.Error as e:
            self.logger.error("Failed to get recent executions", error=str(e))
            return []

    def get_token_balances(self, execution_log_id: int) -> list[dict[str, Any]]:
        """Token balances recorded for one execution record."""
        try:
            with self._get_connection() as conn:
                rows = conn.execute("""
                    SELECT t.token_symbol, t.token_address, tb.balance_before, tb.balance_after
                    FROM token_balances tb JOIN tokens t ON tb.token_id = t.id
                    WHERE tb.execution_log_id = ?
                    ORDER BY tb.id
                """, (execution_log_id,)).fetchall()

                return [dict(row) for row in rows]

        except sqlite3.Error as e:
            self.logger.error("Failed to get token balances", execution_log_id=execution_log_id, error=str(e))
            return []

    def get_execution_stats(self, chain_name: Optional[str] = None) -> dict[str, Any]:
        """Get aggregate execution statistics, optionally for one chain."""
        sql = """
            SELECT
                COUNT(*) AS total_executions,
                COALESCE(SUM(CASE WHEN tx_status = 1 THEN 1 ELSE 0 END), 0) AS successful_txs,
                AVG(execution_time_ms) AS avg_execution_time,
                MAX(timestamp) AS last_execution
            FROM execution_logs
        """
        params: tuple = ()
        if chain_name:
            sql += " WHERE chain_name = ?"
            params = (chain_name,)

        try:
            with self._get_connection() as conn:
                row = conn.execute(sql, params).fetchone()
                return dict(row) if row else {}

        except sqlite3.Error as e:
            self.logger.error("Failed to get execution stats", error=str(e))
            return {}
