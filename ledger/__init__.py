"""
Ledger - Source Package

Storage layer for a personal ledger (transactions, categories, budgets)
kept in a plain key-value store that only offers whole-value get/put.

DESIGN PRINCIPLES:
1. A record is never lost; a duplicate is the lesser failure
2. Old key layouts stay readable and are upgraded lazily on read
3. Write contention is reduced by spreading records over many keys
4. Every operation boundary emits a structured event
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Team"
