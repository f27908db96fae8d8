"""Infrastructure Layer - database, filesystem and logging side effects.

Invariants:
    - Infrastructure never imports from api/
    - Storage failures stay here; connection failures surface as GymdeskError
"""
