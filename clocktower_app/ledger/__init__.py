"""
Ledger RPC layer.

``LedgerClient`` is the narrow capability the engine consumes; the web3.py
adapter implements it for EVM chains.
"""

from .base import CallResult, FinalityReceipt, LedgerClient, ReadCall

__all__ = ["CallResult", "FinalityReceipt", "LedgerClient", "ReadCall"]
