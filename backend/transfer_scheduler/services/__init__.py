"""Services Layer - execution engine, due-transfer scheduler, recurrence and commands.

Invariants:
    - Services depend on core/ protocols, never on concrete stores or Flow clients
    - composition.py is the only module that picks concrete implementations

Design Decisions:
    - One service per concern; routes and the scheduler share the same instances
      through TransferServices
"""
