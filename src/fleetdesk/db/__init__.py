"""
fleetdesk.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, seed data and repositories.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The RBAC layer only depends on the repositories, never on a concrete backend.
