"""
EasyMoney - Finance Core

The computational core of a personal-finance tracker: totals and
breakdowns over transactions, budget alerts that fire exactly once per
month, and savings-goal progress.

DESIGN PRINCIPLES:
1. Engines are pure functions over a snapshot
2. Money is Decimal, intervals are half-open
3. An alert condition is notified once, never twice
4. Every state change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "EasyMoney Team"
