"""
House Meal Ledger - Source Package

An expense-sharing ledger for a shared house: members, bills,
payments and daily meal counts, settled by meal consumption.

DESIGN PRINCIPLES:
1. Costs follow meals, not head-count
2. The settlement engine is pure - it never touches storage
3. Every mutation is auditable
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "House Meal Ledger Team"
