"""
Piggybank - Source Package

Backend for a personal-finance app: users log income and expense
transactions, set monthly budgets per category and follow how much
they are saving day by day.

DESIGN PRINCIPLES:
1. The savings engine is pure - same snapshot, same day, same answer
2. Storage and identity are external and swappable
3. Side effects (push notifications) are best-effort and never fail a write
4. Every significant step is logged and auditable
"""

__version__ = "1.0.0"
__author__ = "Piggybank Team"
