"""Infrastructure Layer: external service clients and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from services/
    - Provider SDK errors are mapped to core/errors.py before leaving this layer
"""
