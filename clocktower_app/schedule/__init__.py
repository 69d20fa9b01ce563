"""
Due-date scheduling.

Calendar arithmetic mapping a day index to the per-frequency due-day values
the ledger indexes subscriptions by.
"""

from .calendar import due_day, due_days_for

__all__ = ["due_day", "due_days_for"]
