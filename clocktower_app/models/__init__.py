"""
Data models and contracts module.

Immutable data structures for chain configuration, due-day scheduling,
settlement rounds and run outcomes. Follows the frozen-dataclass style used
throughout the package.
"""
