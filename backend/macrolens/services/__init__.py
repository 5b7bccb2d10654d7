"""Service Layer: retry orchestration and the nutrition assistant facade.

Invariants:
    - Services compose core/ functions with infrastructure/ collaborators
    - Only the retry executor owns mutable shared state (attempt counters)
"""
