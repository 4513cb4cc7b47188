"""Services Layer — the imperative shell around the pure core.

Invariants:
    - Services own IO (database sessions); decisions are delegated to core/
    - One service instance per AsyncSession; never shared across requests

Design Decisions:
    - Plain classes constructed per request by api/dependencies.py
"""
