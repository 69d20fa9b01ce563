"""Identifiers for runs and execution records."""

import time
import uuid


def generate_execution_id(prefix: str = "exec") -> str:
    """
    Unique, roughly time-ordered identifier.

    Returns:
        "<prefix>_<epoch ms>_<9 hex chars>", e.g. "exec_base_1706572800000_3f9a1c2b7"
    """
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
