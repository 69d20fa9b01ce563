"""Batched subscription scanning against the ledger."""

from .scanner import SubscriptionScanner

__all__ = ["SubscriptionScanner"]
