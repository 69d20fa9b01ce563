"""Recursion planning and bounded settlement execution."""

from .executor import SettlementExecutor
from .planner import plan_rounds

__all__ = ["SettlementExecutor", "plan_rounds"]
