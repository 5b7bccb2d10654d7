"""Core Layer: pure validation and classification logic, no IO, no async.

Invariants:
    - No module in core/ imports from services/ or infrastructure/
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell (retry executor, provider adapter)
"""
