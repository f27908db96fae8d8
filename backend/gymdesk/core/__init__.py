"""Core Layer - pure values and rules, no IO, no async, no FastAPI.

Invariants:
    - No module in core/ imports from api/ or infrastructure/
    - resolve() and compose() are pure given their inputs
"""
