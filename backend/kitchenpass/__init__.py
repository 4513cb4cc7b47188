"""KitchenPass — invite credential lifecycle for kitchen workspaces.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
