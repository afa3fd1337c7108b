"""
knotulus_api.api.routers

Route modules. Each public endpoint declares its AuthGate and rate-limit guard as
route dependencies; the guard depends on the gate, so the order is fixed.
"""

# Package marker.
