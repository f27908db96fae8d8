"""Gymdesk Backend Package - bootstrap and request pipeline for the gym API.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
