"""
knotulus_api.db

Persistence layer (async SQLAlchemy).

Responsibilities:
- Declarative base + ORM models (users, shop credentials).
- Engine/session factories and dev/test table bootstrap.
- Thin repositories used by the API routers.
"""

# Package marker.
