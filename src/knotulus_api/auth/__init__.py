"""
knotulus_api.auth

Authentication/authorization package.

Responsibilities:
- Identity token verification (and dev-mode issuing).
- The AuthGate FastAPI dependency (Principal + admin/ownership checks).
"""

# Package marker.
