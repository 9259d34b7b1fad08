"""
Subscription Calendar.

Projects recurring subscriptions onto a calendar and totals their cost.
"""

__version__ = "0.1.0"
