"""
Utility functions module.

Day-index arithmetic, timing helpers and token unit formatting shared across
the scheduler.

Time Semantics:
- The ledger counts days as whole UTC days since the Unix epoch
- A day index is always floor(unix_seconds / 86400); there is no local time
- Wall-clock time is only used to decide "today" and to measure elapsed time
"""
