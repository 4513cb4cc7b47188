"""Core Layer — pure invite-credential logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Functions are pure; the only nondeterminism is credential_codes' use of `secrets`

Design Decisions:
    - Functional core separated from imperative shell: validation and authorization
      decisions are testable without a database
"""
