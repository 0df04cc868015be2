"""
Feature modules live under this package.

Each module owns its routes/models/service, while reusing platform primitives
(auth, policy, targets, audit, storage, DB session).
"""
