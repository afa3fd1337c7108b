"""
knotulus_api.ratelimit

Per-caller, per-endpoint request quotas.

Responsibilities:
- Fixed-window counters with periodic eviction (`limiter`).
- The FastAPI guard that applies quotas to routes (`deps`).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Counters are process-local: with several instances each one enforces its own quota.
