"""
Clocktower Caller - Subscription Remit Scheduler

Checks which recurring subscriptions recorded on one or more chains are due
and drives a bounded sequence of remit (settlement) transactions for each
chain, tracking the caller account's balances along the way.
"""

__version__ = "0.1.0"
__author__ = "Clocktower Team"
