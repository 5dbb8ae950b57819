"""Core Layer - pure domain logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - Rule functions are pure and deterministic; the only clock read is utc_now()
    - Async appears only in Protocol signatures that infrastructure implements

Design Decisions:
    - Functional core separated from imperative shell: the engine in services/
      orchestrates IO around the rules defined here
"""
