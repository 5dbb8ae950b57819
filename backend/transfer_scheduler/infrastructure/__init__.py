"""Infrastructure Layer - IO adapters: database, stores, Flow gateway, logging.

Invariants:
    - Every adapter satisfies a Protocol from core/ (repository or collaborator)
    - Library exceptions are mapped to core/errors.py types at this boundary
"""
