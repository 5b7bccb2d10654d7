"""Pydantic Schemas: typed payloads decoded from LLM replies and request shapes.

Invariants:
    - Schemas validate at system boundary (LLM output, caller input)
    - Payload models are frozen once decoded
"""
