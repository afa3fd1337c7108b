"""
knotulus_api.commerce

Client boundary for the third-party commerce (Shopify Admin) API.
"""

# Package marker.
