"""
Core modules for Subscription Calendar.

This package contains the money primitives, recurrence rules, occurrence
projection and cost aggregation. Nothing here performs I/O.
"""
