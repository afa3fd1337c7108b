"""
knotulus_api.services

Service layer.

Responsibilities:
- Business computations that sit between routers and upstream clients.
"""

# Package marker.
