"""Counter store adapters.

Guards depend on ``AbstractCounterStore`` only, so the per-process in-memory
store used in development and tests can be swapped for the SQL-backed store
without touching the guard logic.
"""
