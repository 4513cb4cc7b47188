"""Infrastructure Layer — database plumbing and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from services/ or api/
    - All driver exceptions leave this layer as KitchenPassError subclasses
"""
