"""MacroLens Package: validation and resilience layer for LLM nutrition replies.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""
