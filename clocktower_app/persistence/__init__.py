"""Execution history and run lease persistence."""

from .execution_store import ExecutionRecord, ExecutionStore

__all__ = ["ExecutionRecord", "ExecutionStore"]
